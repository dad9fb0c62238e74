"""
Document intake and rendering.
Text extraction from uploaded PDF/DOCX/TXT files, and DOCX/PDF output for downloads.
"""
import io
import re
import logging
from typing import List, Tuple, Union

import PyPDF2
import docx
from docx.shared import Pt
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from resume_optimizer.core.exceptions import InvalidInputError
from resume_optimizer.schemas.resume import ResumeContent

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TXT_MIME = "text/plain"

SUPPORTED_UPLOADS = {
    PDF_MIME: ".pdf",
    DOCX_MIME: ".docx",
    TXT_MIME: ".txt",
}
DOWNLOAD_FORMATS = {
    "pdf": PDF_MIME,
    "docx": DOCX_MIME,
}

Section = Tuple[str, List[str]]

_NAME_AT_START = re.compile(r"^[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)+")


# --- Intake ---

def parse_document(data: bytes, mime_type: str) -> str:
    """Extract plain text from an uploaded document."""
    if mime_type not in SUPPORTED_UPLOADS:
        raise InvalidInputError(
            f"Unsupported file type: {mime_type}. Please upload a PDF, DOCX or TXT file.",
            details={"mimeType": mime_type},
        )

    try:
        if mime_type == PDF_MIME:
            reader = PyPDF2.PdfReader(io.BytesIO(data))
            text = "\n".join((page.extract_text() or "") for page in reader.pages)
        elif mime_type == DOCX_MIME:
            document = docx.Document(io.BytesIO(data))
            text = "\n".join(paragraph.text for paragraph in document.paragraphs)
        else:
            text = data.decode("utf-8", errors="ignore")
    except Exception as e:
        logger.error(f"Text extraction failed for {mime_type}: {e}")
        raise InvalidInputError("Failed to parse resume file", details={"cause": str(e)})

    text = text.strip()
    if not text:
        raise InvalidInputError("No text could be extracted from the uploaded file")
    return text


# --- Naming ---

def get_initials(text: str) -> str:
    match = _NAME_AT_START.match(text.strip())
    if not match:
        return "NA"
    return "".join(part[0] for part in match.group().split()).upper()


def build_filename(resume_text: str, job_title: str, extension: str = "pdf") -> str:
    """<initials>_<job_title>.<ext>, with the title reduced to safe characters."""
    clean_title = re.sub(r"[^a-zA-Z0-9\s]", "", job_title or "")
    clean_title = re.sub(r"\s+", "_", clean_title.strip())[:50] or "Resume"
    return f"{get_initials(resume_text)}_{clean_title}.{extension}"


def with_extension(filename: str, extension: str) -> str:
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return f"{stem}.{extension}"


# --- Rendering ---

def resume_sections(content: ResumeContent) -> List[Section]:
    """Lay structured resume content out as ATS-standard sections."""
    sections: List[Section] = []
    contact = content.contact_info
    contact_line = " | ".join(
        value for value in (contact.email, contact.phone, contact.location, contact.linkedin,
                             contact.portfolio, contact.github) if value
    )
    if contact.full_name or contact_line:
        sections.append((contact.full_name, [contact_line] if contact_line else []))

    if content.professional_summary:
        sections.append(("PROFESSIONAL SUMMARY", [content.professional_summary]))

    skills = content.skills
    skill_lines = []
    if skills.technical:
        skill_lines.append("Technical: " + ", ".join(skills.technical))
    if skills.soft:
        skill_lines.append("Soft: " + ", ".join(skills.soft))
    if skills.certifications:
        skill_lines.append("Certifications: " + ", ".join(skills.certifications))
    if skill_lines:
        sections.append(("SKILLS", skill_lines))

    if content.experience:
        lines = []
        for job in content.experience:
            header = " - ".join(part for part in (job.title, job.company, job.location) if part)
            dates = " to ".join(part for part in (job.start_date, job.end_date) if part)
            lines.append(f"{header} ({dates})" if dates else header)
            lines.extend(f"• {achievement}" for achievement in job.achievements)
        sections.append(("PROFESSIONAL EXPERIENCE", lines))

    if content.education:
        lines = []
        for school in content.education:
            header = " - ".join(part for part in (school.degree, school.institution, school.location) if part)
            lines.append(f"{header} ({school.graduation_date})" if school.graduation_date else header)
            if school.gpa:
                lines.append(f"GPA: {school.gpa}")
            lines.extend(f"• {honor}" for honor in school.honors)
        sections.append(("EDUCATION", lines))

    if content.projects:
        lines = []
        for project in content.projects:
            lines.append(project.name + (f" ({project.url})" if project.url else ""))
            if project.description:
                lines.append(project.description)
            if project.technologies:
                lines.append("Technologies: " + ", ".join(project.technologies))
        sections.append(("PROJECTS", lines))

    for heading, items in (
        ("AWARDS", content.awards),
        ("VOLUNTEER WORK", content.volunteer_work),
        ("LANGUAGES", content.languages),
        ("PUBLICATIONS", content.publications),
    ):
        if items:
            sections.append((heading, [f"• {item}" for item in items]))
    return sections


def text_sections(text: str) -> List[Section]:
    return [("", [line.rstrip() for line in text.splitlines()])]


def render_document(content: Union[ResumeContent, str], fmt: str) -> bytes:
    """Render structured resume content (or plain text) to DOCX or PDF bytes."""
    fmt = (fmt or "").lower()
    if fmt not in DOWNLOAD_FORMATS:
        raise InvalidInputError(
            f"Unsupported format: {fmt}. Supported formats: pdf, docx",
            details={"format": fmt},
        )
    sections = text_sections(content) if isinstance(content, str) else resume_sections(content)
    if fmt == "docx":
        return _render_docx(sections)
    return _render_pdf(sections)


def _render_docx(sections: List[Section]) -> bytes:
    document = docx.Document()
    for index, (heading, lines) in enumerate(sections):
        if heading:
            document.add_heading(heading, level=0 if index == 0 else 1)
        for line in lines:
            paragraph = document.add_paragraph()
            run = paragraph.add_run(line)
            run.font.size = Pt(11)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _render_pdf(sections: List[Section]) -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=LETTER)
    width, height = LETTER
    left = right = top = bottom = 0.75 * inch
    max_width = width - left - right
    leading = 13.5
    y = height - top

    def ensure_space():
        nonlocal y
        if y - leading <= bottom:
            c.showPage()
            y = height - top

    def wrap(text: str, font: str, size: float) -> List[str]:
        words = text.split()
        if not words:
            return [""]
        lines, current = [], words[0]
        for word in words[1:]:
            candidate = current + " " + word
            if c.stringWidth(candidate, font, size) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
        return lines

    def draw(text: str, font: str, size: float):
        nonlocal y
        c.setFont(font, size)
        for line in wrap(text, font, size):
            ensure_space()
            c.drawString(left, y, line)
            y -= leading

    for heading, lines in sections:
        if heading:
            draw(heading, "Helvetica-Bold", 12.5)
        for line in lines:
            draw(line, "Helvetica", 10.5)
        y -= leading / 2

    c.save()
    return buffer.getvalue()
