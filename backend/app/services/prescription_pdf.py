from __future__ import annotations

from io import BytesIO
from textwrap import wrap

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.models.prescription import Prescription

LINE_HEIGHT = 5 * mm
BOTTOM_MARGIN = 40 * mm
TOP_OF_PAGE = 270 * mm
WRAP_WIDTH = 95


def _wrap(text: str, width: int = WRAP_WIDTH) -> list[str]:
    lines: list[str] = []
    for paragraph in text.splitlines() or [""]:
        lines.extend(wrap(paragraph, width=width) or [""])
    return lines


def _draw_header(pdf: canvas.Canvas, clinic_name: str, clinic_lines: list[str]) -> None:
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(20 * mm, 280 * mm, clinic_name)
    pdf.setFont("Helvetica", 10)
    y = 274 * mm
    for line in clinic_lines:
        pdf.drawString(20 * mm, y, line)
        y -= 4 * mm
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawRightString(190 * mm, 280 * mm, "Prescription")
    pdf.setStrokeColor(colors.lightgrey)
    pdf.line(20 * mm, 258 * mm, 190 * mm, 258 * mm)


def _draw_parties(pdf: canvas.Canvas, prescription: Prescription) -> None:
    appointment = prescription.consultation.appointment
    patient = appointment.patient
    doctor = appointment.doctor

    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(20 * mm, 245 * mm, "Patient")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(20 * mm, 240 * mm, patient.full_name)
    pdf.drawString(20 * mm, 235 * mm, f"Date of birth: {patient.date_of_birth.isoformat()}")
    if patient.phone:
        pdf.drawString(20 * mm, 230 * mm, f"Phone: {patient.phone}")

    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(120 * mm, 245 * mm, "Prescriber")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(120 * mm, 240 * mm, doctor.email)
    pdf.drawString(120 * mm, 235 * mm, doctor.specialization)
    if doctor.license_number:
        pdf.drawString(120 * mm, 230 * mm, f"Licence: {doctor.license_number}")
    pdf.drawString(120 * mm, 225 * mm, f"Date: {prescription.created_at.strftime('%Y-%m-%d')}")


def _new_page(pdf: canvas.Canvas) -> float:
    pdf.showPage()
    pdf.setFont("Helvetica", 10)
    return TOP_OF_PAGE


def _draw_section(pdf: canvas.Canvas, title: str, text: str, y: float) -> float:
    # title and its first line stay together
    if y - 2 * LINE_HEIGHT < BOTTOM_MARGIN:
        y = _new_page(pdf)
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(20 * mm, y, title)
    y -= LINE_HEIGHT + 2
    pdf.setFont("Helvetica", 10)
    for line in _wrap(text):
        if y < BOTTOM_MARGIN:
            y = _new_page(pdf)
        pdf.drawString(20 * mm, y, line)
        y -= LINE_HEIGHT
    return y - LINE_HEIGHT


def _draw_signature(pdf: canvas.Canvas) -> None:
    pdf.setStrokeColor(colors.black)
    pdf.line(120 * mm, 35 * mm, 190 * mm, 35 * mm)
    pdf.setFont("Helvetica", 9)
    pdf.drawString(120 * mm, 30 * mm, "Prescriber signature")


def _draw_footer(pdf: canvas.Canvas, prescription: Prescription) -> None:
    pdf.setFont("Helvetica", 8)
    pdf.setFillColor(colors.grey)
    pdf.drawString(
        20 * mm,
        15 * mm,
        f"Prescription #{prescription.id}. Valid only with the prescriber's signature.",
    )
    pdf.setFillColor(colors.black)


def build_prescription_pdf(prescription: Prescription) -> bytes:
    clinic = prescription.consultation.appointment.clinic
    clinic_lines = [line for line in (clinic.address, clinic.phone) if line]

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(f"Prescription {prescription.id}")
    _draw_header(pdf, clinic.name, clinic_lines)
    _draw_parties(pdf, prescription)
    y = _draw_section(pdf, "Medications", prescription.medications, 210 * mm)
    if prescription.instructions:
        _draw_section(pdf, "Instructions", prescription.instructions, y)
    _draw_signature(pdf)
    _draw_footer(pdf, prescription)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
