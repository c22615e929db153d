from __future__ import annotations

from fastapi import HTTPException, status

from app.models.appointment import Appointment, AppointmentStatus

# COMPLETED is reached only by recording a consultation.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.scheduled: {AppointmentStatus.confirmed, AppointmentStatus.cancelled},
    AppointmentStatus.confirmed: {AppointmentStatus.cancelled},
    AppointmentStatus.completed: set(),
    AppointmentStatus.cancelled: set(),
}


def ensure_transition(appointment: Appointment, new_status: AppointmentStatus) -> None:
    current = appointment.status
    if new_status == current:
        return
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change appointment status from {current.value} to {new_status.value}",
        )


def ensure_editable(appointment: Appointment) -> None:
    if appointment.is_terminal:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Appointment is {appointment.status.value} and can no longer be changed",
        )
