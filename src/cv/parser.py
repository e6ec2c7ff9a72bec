# This module splits CV text into named sections so versions can be compared section by section.
# It exists because tailoring keeps or replaces whole sections rather than editing a CV wholesale.
# Headers are matched case-insensitively on their own line, with an optional trailing colon.
# Header variants are normalised to canonical names so "Work History" matches "Experience".

from __future__ import annotations

import re
from dataclasses import dataclass

SECTION_HEADERS: tuple[str, ...] = (
    "SUMMARY",
    "PROFESSIONAL SUMMARY",
    "EXECUTIVE SUMMARY",
    "PROFILE",
    "PROFESSIONAL PROFILE",
    "CAREER SUMMARY",
    "OBJECTIVE",
    "CAREER OBJECTIVE",
    "EXPERIENCE",
    "WORK EXPERIENCE",
    "PROFESSIONAL EXPERIENCE",
    "EMPLOYMENT HISTORY",
    "WORK HISTORY",
    "CAREER HISTORY",
    "RELEVANT EXPERIENCE",
    "EDUCATION",
    "ACADEMIC BACKGROUND",
    "EDUCATIONAL BACKGROUND",
    "ACADEMIC QUALIFICATIONS",
    "QUALIFICATIONS",
    "SKILLS",
    "TECHNICAL SKILLS",
    "CORE COMPETENCIES",
    "KEY SKILLS",
    "PROFESSIONAL SKILLS",
    "AREAS OF EXPERTISE",
    "COMPETENCIES",
    "CERTIFICATIONS",
    "CERTIFICATES",
    "LICENSES",
    "LICENSES AND CERTIFICATIONS",
    "PROFESSIONAL CERTIFICATIONS",
    "CREDENTIALS",
    "PROJECTS",
    "KEY PROJECTS",
    "SELECTED PROJECTS",
    "PROJECT EXPERIENCE",
    "ACHIEVEMENTS",
    "ACCOMPLISHMENTS",
    "KEY ACHIEVEMENTS",
    "AWARDS",
    "AWARDS AND HONORS",
    "HONORS",
    "RECOGNITION",
    "PUBLICATIONS",
    "RESEARCH",
    "RESEARCH PUBLICATIONS",
    "PAPERS",
    "VOLUNTEER WORK",
    "VOLUNTEER EXPERIENCE",
    "COMMUNITY INVOLVEMENT",
    "EXTRACURRICULAR ACTIVITIES",
    "ACTIVITIES",
    "INTERESTS",
    "HOBBIES",
    "PROFESSIONAL AFFILIATIONS",
    "MEMBERSHIPS",
    "ASSOCIATIONS",
    "PROFESSIONAL MEMBERSHIPS",
    "REFERENCES",
)

SECTION_NAME_MAPPINGS: dict[str, str] = {
    "professional summary": "Summary",
    "executive summary": "Summary",
    "career summary": "Summary",
    "profile": "Summary",
    "professional profile": "Summary",
    "objective": "Summary",
    "career objective": "Summary",
    "work experience": "Experience",
    "professional experience": "Experience",
    "employment history": "Experience",
    "work history": "Experience",
    "career history": "Experience",
    "relevant experience": "Experience",
    "academic background": "Education",
    "educational background": "Education",
    "academic qualifications": "Education",
    "qualifications": "Education",
    "technical skills": "Skills",
    "core competencies": "Skills",
    "key skills": "Skills",
    "professional skills": "Skills",
    "areas of expertise": "Skills",
    "competencies": "Skills",
    "certificates": "Certifications",
    "licenses": "Certifications",
    "licenses and certifications": "Certifications",
    "professional certifications": "Certifications",
    "credentials": "Certifications",
    "key projects": "Projects",
    "selected projects": "Projects",
    "project experience": "Projects",
    "accomplishments": "Achievements",
    "key achievements": "Achievements",
    "awards": "Achievements",
    "awards and honors": "Achievements",
    "honors": "Achievements",
    "recognition": "Achievements",
    "research": "Publications",
    "research publications": "Publications",
    "papers": "Publications",
    "volunteer experience": "Volunteer Work",
    "community involvement": "Volunteer Work",
    "professional affiliations": "Professional Memberships",
    "memberships": "Professional Memberships",
    "associations": "Professional Memberships",
}

_HEADER_PATTERN = re.compile(
    r"^(" + "|".join(re.escape(header) for header in SECTION_HEADERS) + r")[ \t]*:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_PHONE_PATTERN = re.compile(r"\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")
_LINKEDIN_PATTERN = re.compile(r"linkedin\.com", re.IGNORECASE)
_BULLET_PATTERNS = (
    re.compile(r"^[-•*→▪▸►◆◇○●]"),
    re.compile(r"^\d+[.)]\s"),
    re.compile(r"^[a-z][.)]\s", re.IGNORECASE),
)

CONTACT_LINE_SCAN = 5
MIN_PREAMBLE_LENGTH = 10


@dataclass(frozen=True)
class CVSection:
    name: str
    text: str
    start_index: int
    end_index: int


def _title_case(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.lower().split(" "))


def normalize_section_name(name: str) -> str:
    return SECTION_NAME_MAPPINGS.get(name.lower().strip(), _title_case(name))


def _looks_like_contact_line(line: str) -> bool:
    return (
        "@" in line
        or _PHONE_PATTERN.search(line) is not None
        or _LINKEDIN_PATTERN.search(line) is not None
        or len(line) < 50
    )


def _single_section(text: str) -> list[CVSection]:
    lines = text.split("\n")
    content_start = 0
    for line in lines[:CONTACT_LINE_SCAN]:
        if not _looks_like_contact_line(line.strip()):
            break
        content_start = text.index(line) + len(line)

    return [
        CVSection(
            name="Full CV",
            text=text[content_start:].strip(),
            start_index=content_start,
            end_index=len(text),
        )
    ]


def parse_cv_into_sections(cv_text: str) -> list[CVSection]:
    if not cv_text or not isinstance(cv_text, str):
        return []

    text = cv_text.strip()
    matches = [(match.group(1).strip(), match.start()) for match in _HEADER_PATTERN.finditer(text)]
    if not matches:
        return _single_section(text)

    sections: list[CVSection] = []
    for position, (header, start) in enumerate(matches):
        end = matches[position + 1][1] if position + 1 < len(matches) else len(text)
        sections.append(
            CVSection(
                name=normalize_section_name(header),
                text=text[start:end].strip(),
                start_index=start,
                end_index=end,
            )
        )

    first_start = matches[0][1]
    if first_start > 0:
        preamble = text[:first_start].strip()
        if len(preamble) > MIN_PREAMBLE_LENGTH:
            sections.insert(
                0,
                CVSection(name="Contact Information", text=preamble, start_index=0, end_index=first_start),
            )
    return sections


def assemble_cv_from_sections(sections: list[CVSection] | list[dict[str, str]]) -> str:
    texts = [section["text"] if isinstance(section, dict) else section.text for section in sections]
    return "\n\n".join(texts)


def extract_bullet_points(section_text: str) -> list[str]:
    bullets: list[str] = []
    for line in section_text.split("\n"):
        trimmed = line.strip()
        if any(pattern.match(trimmed) for pattern in _BULLET_PATTERNS):
            bullets.append(trimmed)
    return bullets


def sections_match(first: str, second: str) -> bool:
    return normalize_section_name(first).lower() == normalize_section_name(second).lower()


def get_section_by_name(sections: list[CVSection], name: str) -> CVSection | None:
    for section in sections:
        if sections_match(section.name, name):
            return section
    return None


def _significant_words(text: str) -> set[str]:
    return {word for word in text.lower().split() if len(word) > 3}


def calculate_text_similarity(first: str, second: str) -> float:
    """Jaccard overlap of words longer than three characters."""

    words_first = _significant_words(first)
    words_second = _significant_words(second)
    union = words_first | words_second
    if not union:
        return 0.0
    return len(words_first & words_second) / len(union)
