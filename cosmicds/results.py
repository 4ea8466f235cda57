"""Outcome enums returned by the service layer.

Business-rule outcomes (misses, conflicts, repeated transitions) are values,
not exceptions; only unexpected store failures collapse into ``error``.
"""
import enum


class _Result(str, enum.Enum):
    def success(self) -> bool:
        return self in self._successes()

    @classmethod
    def _successes(cls) -> set:
        return {cls("ok")}


class SignUpResult(_Result):
    ok = "ok"
    email_exists = "email_already_exists"
    bad_request = "bad_request"
    error = "error"


class LoginResult(_Result):
    ok = "ok"
    email_not_exist = "email_not_exist"
    incorrect_password = "incorrect_password"
    not_verified = "not_verified"
    bad_request = "bad_request"
    error = "error"


class VerificationResult(_Result):
    ok = "ok"
    already_verified = "already_verified"
    invalid_code = "invalid_code"
    bad_request = "bad_request"
    error = "error"


class CreateClassResult(_Result):
    ok = "ok"
    already_exists = "already_exists"
    bad_request = "bad_request"
    error = "error"


class SubmitMeasurementResult(_Result):
    created = "measurement_created"
    updated = "measurement_updated"
    no_such_student = "no_such_student"
    no_such_galaxy = "no_such_galaxy"
    bad_request = "bad_request"
    error = "error"

    @classmethod
    def _successes(cls) -> set:
        return {cls.created, cls.updated}

    def status_code(self) -> int:
        if self.success():
            return 200
        if self is SubmitMeasurementResult.error:
            return 500
        if self is SubmitMeasurementResult.bad_request:
            return 400
        return 404


class RemoveMeasurementResult(_Result):
    removed = "measurement_deleted"
    not_found = "no_such_measurement"
    bad_request = "bad_request"
    error = "error"

    @classmethod
    def _successes(cls) -> set:
        return {cls.removed}

    def status_code(self) -> int:
        return {
            RemoveMeasurementResult.removed: 200,
            RemoveMeasurementResult.not_found: 404,
            RemoveMeasurementResult.bad_request: 400,
            RemoveMeasurementResult.error: 500,
        }[self]
