"""
HTTP client for the WinQuizz backend.
Fetches remote quiz sessions and reports answers, final results and
leaderboards. Disabled when no base URL is configured.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import AnswerResult, Correct, Question

logger = logging.getLogger(__name__)


class QuizApiError(Exception):
    """Base exception for quiz backend errors."""
    pass


class NetworkError(QuizApiError):
    """Network connectivity issues or an error status from the backend."""
    pass


class InvalidResponseError(QuizApiError):
    """Backend returned an unexpected response format."""
    pass


class QuizApiClient:
    """Thin aiohttp wrapper around the quiz backend endpoints."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: float = 15.0):
        self.base_url = base_url.rstrip('/') if base_url else None
        self.token = token
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        """
        Send one request and decode the JSON body.

        Raises:
            QuizApiError: If the client is disabled
            NetworkError: On connection failures or a non-2xx status
            InvalidResponseError: If the body is not JSON
        """
        if not self.enabled:
            raise QuizApiError("Quiz backend is not configured")

        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    headers=self._headers(),
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status not in (200, 201):
                        text = await resp.text()
                        logger.error("Quiz backend %s %s HTTP %d: %s", method, path, resp.status, text[:200])
                        raise NetworkError(f"Quiz backend returned {resp.status} for {method} {path}")
                    try:
                        return await resp.json(content_type=None)
                    except ValueError as e:
                        raise InvalidResponseError(f"Quiz backend sent invalid JSON for {path}: {e}")
        except QuizApiError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Quiz backend %s %s failed: %s", method, path, e)
            raise NetworkError(f"Could not reach quiz backend: {e}")

    async def fetch_quiz(self, session_id: str) -> Dict[str, Any]:
        """
        Fetch a remote quiz session definition.

        Returns:
            The decoded session object; it must carry a 'questions' list
        """
        data = await self._request("GET", f"/api/quiz/session/{session_id}")
        if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
            raise InvalidResponseError(f"Quiz session {session_id} has no question list")
        logger.info("Fetched remote quiz session %s with %d questions", session_id, len(data["questions"]))
        return data

    async def report_answer(
        self,
        session_id: str,
        question: Question,
        answer_index: int,
        time_taken: int,
        result: AnswerResult
    ) -> Any:
        """Report one evaluated answer for a remote session."""
        payload = {
            "session_id": session_id,
            "question_id": question.question_id,
            "answer": answer_index,
            "time_taken": time_taken,
            "is_correct": isinstance(result, Correct),
            "points_earned": result.points,
        }
        return await self._request("POST", "/api/quiz/answer", payload)

    async def report_result(self, summary: Dict[str, Any]) -> Any:
        """Report the final outcome of a completed session."""
        payload = {
            "final_score": summary["final_score"],
            "total_time": summary["total_time"],
            "correct_answers": summary.get("correct_answers"),
            "best_streak": summary.get("best_streak"),
            "quiz_name": summary.get("quiz_name"),
            "completion_reason": summary.get("completion_reason"),
        }
        response = await self._request("POST", f"/api/quiz/session/{summary['session_id']}/finish", payload)
        logger.info("Reported result for session %s: %s points", summary["session_id"], summary["final_score"])
        return response

    async def fetch_leaderboard(self, contest_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Fetch the leaderboard for a contest or quiz.

        Returns:
            Up to limit entries with rank, username and score
        """
        data = await self._request("GET", f"/api/quiz/leaderboard/{contest_id}")
        if not isinstance(data, list):
            raise InvalidResponseError(f"Leaderboard for {contest_id} is not a list")
        return data[:limit]
