"""Field validation for task input.

Validators collect every problem with a payload before raising, so a caller
can highlight all offending fields at once. Soft checks (unusual estimates,
overdue completion) never raise; they come back as warnings.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import ValidationError
from .datetime import now_utc, parse_datetime

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 5000
MIN_ESTIMATED_MINUTES = 1
MAX_ESTIMATED_MINUTES = 1440  # 24 hours
MIN_ACTUAL_MINUTES = 0
MAX_ACTUAL_MINUTES = 1440
MIN_INTENSITY = 1
MAX_INTENSITY = 5

TASK_STATUSES = ("todo", "in_progress", "done", "archived")
PRIORITIES = ("low", "medium", "high")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class TaskValidator:
    """Composable field checks for task creation, updates and completion."""

    def __init__(self):
        self.validation_errors: List[Dict[str, Any]] = []

    def _add_error(self, field_name: str, message: str, value: Any):
        self.validation_errors.append({
            "field": field_name,
            "message": message,
            "value": value,
        })

    def _raise_if_errors(self):
        if self.validation_errors:
            first = self.validation_errors[0]
            errors = list(self.validation_errors)
            self.validation_errors = []
            logger.debug(f"Validation failed for fields: {[e['field'] for e in errors]}")
            raise ValidationError(first["message"], first["field"], first["value"], errors)

    # ----- single-field rules -----

    def check_required(self, data: Mapping[str, Any], field_name: str) -> bool:
        if data.get(field_name) is None:
            self._add_error(field_name, f"{field_name} is required", None)
            return False
        return True

    def check_int_range(self, field_name: str, value: Any, minimum: int, maximum: int,
                        message: Optional[str] = None):
        if value is None:
            return
        if not _is_int(value) or not minimum <= value <= maximum:
            self._add_error(
                field_name,
                message or f"{field_name} must be between {minimum} and {maximum}",
                value,
            )

    def check_string_length(self, field_name: str, value: Any, minimum: int = 0,
                            maximum: Optional[int] = None):
        if value is None:
            return
        if not isinstance(value, str):
            self._add_error(field_name, f"{field_name} must be a string", value)
            return
        length = len(value.strip()) if minimum else len(value)
        if length < minimum:
            self._add_error(field_name, f"{field_name} cannot be empty", value)
        elif maximum is not None and length > maximum:
            self._add_error(field_name, f"{field_name} must be at most {maximum} characters", value)

    def check_choice(self, field_name: str, value: Any, choices: Iterable[str]):
        if value is None:
            return
        raw = getattr(value, "value", value)
        if raw not in choices:
            self._add_error(
                field_name,
                f"{field_name} must be one of: {', '.join(choices)}",
                value,
            )

    def check_date(self, field_name: str, value: Any):
        if value is None or isinstance(value, datetime):
            return
        try:
            parse_datetime(value)
        except (TypeError, ValueError):
            self._add_error(field_name, f"{field_name} must be a valid date", value)

    # ----- payload validators -----

    def validate_create(self, data: Mapping[str, Any]) -> None:
        """Validate a task creation payload.

        Raises:
            ValidationError: On the first call that finds any problem
        """
        if self.check_required(data, "title"):
            self.check_string_length("title", data["title"], 1, TITLE_MAX_LENGTH)
        self.check_string_length("description", data.get("description"), 0, DESCRIPTION_MAX_LENGTH)
        if self.check_required(data, "estimated_minutes"):
            self.check_int_range(
                "estimated_minutes", data["estimated_minutes"],
                MIN_ESTIMATED_MINUTES, MAX_ESTIMATED_MINUTES,
                "Estimated minutes must be between 1 and 1440 (24 hours)",
            )
        if self.check_required(data, "estimated_intensity"):
            self.check_int_range(
                "estimated_intensity", data["estimated_intensity"],
                MIN_INTENSITY, MAX_INTENSITY,
                "Estimated intensity must be between 1 and 5",
            )
        self.check_choice("status", data.get("status"), TASK_STATUSES)
        self.check_choice("priority", data.get("priority"), PRIORITIES)
        self.check_date("due_date", data.get("due_date"))
        self._raise_if_errors()

    def validate_update(self, patch: Mapping[str, Any]) -> None:
        """Validate a partial update; only fields present are checked."""
        if "title" in patch:
            self.check_string_length("title", patch["title"], 1, TITLE_MAX_LENGTH)
            if patch["title"] is None:
                self._add_error("title", "title cannot be empty", None)
        self.check_string_length("description", patch.get("description"), 0, DESCRIPTION_MAX_LENGTH)
        for field_name, minimum, maximum in (
            ("estimated_minutes", MIN_ESTIMATED_MINUTES, MAX_ESTIMATED_MINUTES),
            ("estimated_intensity", MIN_INTENSITY, MAX_INTENSITY),
            ("actual_minutes", MIN_ACTUAL_MINUTES, MAX_ACTUAL_MINUTES),
            ("actual_intensity", MIN_INTENSITY, MAX_INTENSITY),
        ):
            self.check_int_range(field_name, patch.get(field_name), minimum, maximum)
        for field_name in ("estimated_minutes", "estimated_intensity"):
            if field_name in patch and patch[field_name] is None:
                self._add_error(field_name, f"{field_name} is required", None)
        self.check_choice("status", patch.get("status"), TASK_STATUSES)
        self.check_choice("priority", patch.get("priority"), PRIORITIES)
        self.check_date("due_date", patch.get("due_date"))
        self._raise_if_errors()

    def validate_completion(self, actual_intensity: Any, actual_minutes: Any = None) -> None:
        """Validate the outcome values supplied when completing a task."""
        if actual_intensity is None:
            self._add_error("actual_intensity", "Actual intensity is required to complete a task", None)
        else:
            self.check_int_range(
                "actual_intensity", actual_intensity, MIN_INTENSITY, MAX_INTENSITY,
                "Actual intensity must be between 1 and 5",
            )
        self.check_int_range(
            "actual_minutes", actual_minutes, MIN_ACTUAL_MINUTES, MAX_ACTUAL_MINUTES,
            "Actual minutes must be between 0 and 1440 (24 hours)",
        )
        self._raise_if_errors()


def estimate_warnings(estimated_minutes: int, estimated_intensity: int) -> List[str]:
    """Return soft warnings for estimates that look unusual for their intensity.

    High intensity usually means shorter focused work; low intensity work
    (learning, research) is rarely a few minutes long.
    """
    if estimated_intensity >= 4 and estimated_minutes > 240:
        return ["Time estimate seems long for a high-intensity task"]
    if estimated_intensity <= 2 and estimated_minutes < 15:
        return ["Time estimate seems short for a low-intensity task"]
    return []


def is_overdue(due_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Check whether a due date has passed."""
    if due_date is None:
        return False
    return due_date < (now or now_utc())
