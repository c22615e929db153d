from app.models import Prescription
from app.services.prescription_pdf import (
    BOTTOM_MARGIN,
    LINE_HEIGHT,
    TOP_OF_PAGE,
    _draw_section,
    _wrap,
    build_prescription_pdf,
)


class RecordingCanvas:
    def __init__(self):
        self.page = 0
        self.strings = []

    def setFont(self, *args):
        pass

    def showPage(self):
        self.page += 1

    def drawString(self, x, y, text):
        self.strings.append((self.page, y, text))


def test_wrap_keeps_lines_short():
    text = "word " * 80
    lines = _wrap(text, width=40)
    assert len(lines) > 1
    assert all(len(line) <= 40 for line in lines)


def test_wrap_splits_tokens_longer_than_the_line():
    lines = _wrap("x" * 130, width=50)
    assert lines == ["x" * 50, "x" * 50, "x" * 30]


def test_wrap_keeps_blank_lines():
    assert _wrap("Morning dose\n\nEvening dose") == ["Morning dose", "", "Evening dose"]


def test_section_title_moves_to_next_page_near_the_bottom():
    pdf = RecordingCanvas()
    _draw_section(pdf, "Instructions", "Take with food", BOTTOM_MARGIN + LINE_HEIGHT)
    assert pdf.strings[0] == (1, TOP_OF_PAGE, "Instructions")
    assert all(page == 1 and y >= BOTTOM_MARGIN for page, y, _ in pdf.strings)


def test_long_prescription_renders(factory, db_session, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    consultation = factory.consultation(appointment)
    prescription = factory.prescription(consultation)
    prescription.medications = "\n".join(f"Medication {n}: 5mg twice daily" for n in range(120))
    db_session.commit()

    pdf = build_prescription_pdf(db_session.get(Prescription, prescription.id))
    assert pdf.startswith(b"%PDF")
    # one "/Type /Pages" tree plus at least two "/Type /Page" leaves
    assert pdf.count(b"/Type /Page") >= 3
