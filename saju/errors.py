"""Engine errors and the command line exit-code guard."""

import logging


class SajuError(Exception):
    """Base class for every engine error. ``code`` names the kind for JSON logs."""

    code = "saju_error"

    def __init__(self, message, *, code=None, detail=None):
        super().__init__(message)
        if code:
            self.code = code
        self.detail = detail or {}

    def to_dict(self):
        return {"code": self.code, "message": str(self), "detail": self.detail}


class CalendarDataUnavailable(SajuError):
    """The calendar gateway cannot resolve lunar or solar-term facts for an instant.

    Recovered inside the resolvers; it only ever surfaces as the
    ``degraded`` flag of a profile.
    """
    code = "calendar_unavailable"


class InternalConsistencyError(SajuError):
    """An assembled chart broke the stem/branch polarity rule. Always fatal."""
    code = "internal_consistency"


class InvalidInput(SajuError):
    code = "invalid_input"


class ConfigError(SajuError):
    code = "config_error"


def safe_main(main_func, component=None) -> int:
    """Run an entry point. 0 on success, 2 on an engine error, 1 on a crash, 130 on Ctrl-C."""
    logger = logging.getLogger(component or __name__)
    try:
        main_func()
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except SajuError as exc:
        logger.error("%s", exc, extra={"error_code": exc.code, "error_detail": exc.detail})
        return 2
    except Exception:
        logger.exception("Unexpected failure")
        return 1
    return 0
