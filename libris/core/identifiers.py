"""
    Student identifier normalization.

    Canonical student ids look like ``1cd23is145``: the institution prefix,
    a two digit admission year, a department code and a three digit roll.
"""

import re

PREFIX = '1cd'

DEPARTMENTS = {
    'IS': 'Information Science and Engineering',
    'CS': 'Computer Science and Engineering',
    'ME': 'Mechanical Engineering',
    'CV': 'Civil Engineering',
    'DS': 'Data Science',
    'IT': 'Internet of Things',
    'EE': 'Electrical and Electronics Engineering',
    'EC': 'Electronics and Communication Engineering',
}

DEPARTMENT_CODES = tuple(DEPARTMENTS)

STUDENT_ID_PATTERN = re.compile(
    r'^%s\d{2}(%s)\d{3}$' % (PREFIX, '|'.join(c.lower() for c in DEPARTMENT_CODES))
)

_NON_ALNUM = re.compile(r'[^a-z0-9]')
_NON_DIGIT = re.compile(r'[^0-9]')


def _fit(digits: str, width: int) -> str:
    return digits.rjust(width, '0')[:width]


def normalize_student_id(value: str) -> str:
    """Lenient normalization of free-form input into ``1cd<yy><dept><roll>``.

    Year and roll are zero padded and truncated to width. An unknown
    department code is dropped, so the result may be shorter than a
    canonical id; use :func:`validate_student_id` to reject those.
    """
    s = _NON_ALNUM.sub('', (value or '').strip().lower())
    if s.startswith(PREFIX):
        s = s[len(PREFIX):]
    year = _NON_DIGIT.sub('', s[:2])
    rest = s[2:]
    dept = rest[:2]
    roll = _NON_DIGIT.sub('', rest[2:])
    if dept.upper() not in DEPARTMENT_CODES:
        dept = ''
    return f"{PREFIX}{_fit(year, 2)}{dept}{_fit(roll, 3)}"


def validate_student_id(value: str) -> bool:
    if not value:
        return False
    return bool(STUDENT_ID_PATTERN.match(normalize_student_id(value)))


def department_of(student_id: str) -> str:
    """Upper-case department code embedded in a canonical id, or ''."""
    normalized = normalize_student_id(student_id)
    if not STUDENT_ID_PATTERN.match(normalized):
        return ''
    return normalized[len(PREFIX) + 2:len(PREFIX) + 4].upper()
