from typing import Optional

from fastapi import HTTPException


class QueueError(HTTPException):
    """Base class for queue business-rule failures.

    Subclasses pin a status code and a user-facing message so the service
    layer can raise them the same way it raises plain ``HTTPException``.
    """

    status_code = 400
    message = "Queue operation failed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.message)


class ClinicNotFound(QueueError):
    status_code = 404
    message = "Clinic not found"


class AppointmentNotFound(QueueError):
    status_code = 404
    message = "Appointment not found"


class ClinicClosed(QueueError):
    status_code = 409
    message = "Clinic is closed"


class AlreadyBooked(QueueError):
    status_code = 409
    message = "You already have an appointment at this clinic"


class QueueEmpty(QueueError):
    status_code = 409
    message = "No patients waiting"


class PatientAlreadyServing(QueueError):
    status_code = 409
    message = "Complete current consultation first"


class NoPatientServing(QueueError):
    status_code = 409
    message = "No patient is currently being served"


class CannotCancel(QueueError):
    status_code = 409
    message = "Only waiting appointments can be cancelled"


class QueueNotEmpty(QueueError):
    status_code = 409
    message = "Queue still has waiting or serving patients"


class ConcurrentConflict(QueueError):
    # Raised when a clinic's queue changed between read and write.
    status_code = 409
    message = "Queue changed while processing, please try again"
