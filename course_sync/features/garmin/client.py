"""
Garmin Connect course upload client.

Posts a Course document to the course service using the session cookies
and CSRF token held by AuthSessionEngine.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from course_sync.config import Settings, settings as default_settings
from course_sync.features.course import Course
from course_sync.shared.errors import (
    AuthExpiredError,
    ErrorCode,
    UploadFailedError,
    UploadRejectedError,
)

logger = logging.getLogger(__name__)


@dataclass
class UploadedCourse:
    course_id: str
    course_name: Optional[str] = None


class GarminCourseClient:
    """
    Async client for the Garmin course service.

    Usage:
        client = GarminCourseClient(session_cookies)
        uploaded = await client.upload_course(course, csrf_token)
        print(client.course_url(uploaded.course_id))
    """

    def __init__(
        self,
        session_cookies: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None
    ):
        self.session_cookies = session_cookies
        self.settings = settings or default_settings
        self._http = http_client

    def _headers(self, csrf_token: str) -> dict:
        connect = self.settings.garmin_connect_url
        return {
            "Content-Type": "application/json",
            "Accept": "application/json, text/plain, */*",
            "User-Agent": self.settings.user_agent,
            "connect-csrf-token": csrf_token,
            "Cookie": self.session_cookies or "",
            "Origin": connect,
            "Referer": f"{connect}/modern/import-data",
        }

    async def _post(self, url: str, payload: dict, headers: dict) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
            return await client.post(url, json=payload, headers=headers)

    def course_url(self, course_id: str) -> str:
        return f"{self.settings.garmin_connect_url}/modern/course/{course_id}"

    async def upload_course(self, course: Course, csrf_token: str) -> UploadedCourse:
        """
        Upload a course.

        Raises:
            AuthExpiredError: No session, 401, or 403 (CSRF rejected)
            UploadRejectedError: 400, 409 or 429
            UploadFailedError: Other failures, including a 2xx without courseId
        """
        if not self.session_cookies:
            raise AuthExpiredError("Not authenticated with Garmin Connect")

        logger.info(
            f"[Garmin API] Uploading course '{course.course_name}' "
            f"({len(course.geo_points)} points)"
        )

        try:
            response = await self._post(
                self.settings.garmin_course_api_url,
                course.to_payload(),
                self._headers(csrf_token)
            )
        except httpx.HTTPError as e:
            logger.error(f"[Garmin API] Upload request failed: {e}")
            raise UploadFailedError(f"Upload failed: {e}") from e

        logger.info(f"[Garmin API] Response status: {response.status_code}")
        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise UploadFailedError("Garmin returned a response that is not JSON") from e

        course_id = data.get("courseId") if isinstance(data, dict) else None
        if course_id is None or course_id == "":
            logger.error(f"[Garmin API] No courseId in response: {str(data)[:200]}")
            raise UploadFailedError("Garmin did not return a course ID")

        uploaded = UploadedCourse(
            course_id=str(course_id),
            course_name=data.get("courseName") or course.course_name
        )
        logger.info(f"[Garmin API] Course created: {uploaded.course_id}")
        return uploaded

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if response.is_success:
            return

        body = response.text
        logger.error(f"[Garmin API] Error response {status}: {body[:500]}")

        if status == 401:
            raise AuthExpiredError("Authentication failed - please reconnect Garmin")
        if status == 403:
            raise AuthExpiredError(
                "CSRF token rejected - please reconnect Garmin", ErrorCode.AUTH_CSRF_INVALID
            )
        if status == 409:
            raise UploadRejectedError(
                "A course with this name already exists", ErrorCode.UPLOAD_DUPLICATE
            )
        if status == 429:
            raise UploadRejectedError(
                "Too many requests - please wait and try again",
                ErrorCode.UPLOAD_QUOTA_EXCEEDED
            )
        if status == 400:
            raise UploadRejectedError(
                f"Invalid course data: {body[:500]}", ErrorCode.UPLOAD_INVALID_PAYLOAD
            )
        raise UploadFailedError(f"Upload failed with HTTP {status}")
