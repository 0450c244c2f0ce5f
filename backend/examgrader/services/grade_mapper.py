"""
Grade mapping - percentage to band/letter grade per exam type.

Each table is a list of (minimum percentage, grade, color) rows, highest first.
The final row of every table has a minimum of 0 so lookups are total.
"""

from typing import Dict, List, Tuple

from examgrader.models.evaluation import Grade

GradeTable = List[Tuple[float, str, str]]

IELTS_BANDS: GradeTable = [
    (95, "9.0", "green"),
    (90, "8.5", "green"),
    (85, "8.0", "green"),
    (80, "7.5", "blue"),
    (75, "7.0", "blue"),
    (70, "6.5", "blue"),
    (65, "6.0", "orange"),
    (60, "5.5", "orange"),
    (55, "5.0", "orange"),
    (50, "4.5", "red"),
    (45, "4.0", "red"),
    (40, "3.5", "red"),
    (35, "3.0", "red"),
    (30, "2.5", "red"),
    (25, "2.0", "red"),
    (20, "1.5", "red"),
    (15, "1.0", "red"),
    (10, "0.5", "red"),
    (0, "0.0", "red"),
]

O_LEVEL_GRADES: GradeTable = [
    (90, "A*", "green"),
    (80, "A", "green"),
    (70, "B", "blue"),
    (60, "C", "yellow"),
    (50, "D", "orange"),
    (40, "E", "orange"),
    (30, "F", "red"),
    (20, "G", "red"),
    (0, "U", "red"),
]

# Same boundaries as O-Level down to E; no F/G bands
A_LEVEL_GRADES: GradeTable = [
    (90, "A*", "green"),
    (80, "A", "green"),
    (70, "B", "blue"),
    (60, "C", "yellow"),
    (50, "D", "orange"),
    (40, "E", "orange"),
    (0, "U", "red"),
]

STANDARD_GRADES: GradeTable = [
    (90, "A+", "green"),
    (85, "A", "green"),
    (80, "A-", "green"),
    (75, "B+", "blue"),
    (70, "B", "blue"),
    (65, "B-", "blue"),
    (60, "C+", "orange"),
    (55, "C", "orange"),
    (50, "C-", "orange"),
    (45, "D+", "red"),
    (40, "D", "red"),
    (35, "D-", "red"),
    (0, "F", "red"),
]

GRADE_TABLES: Dict[str, GradeTable] = {
    "IELTS": IELTS_BANDS,
    "O-LEVEL": O_LEVEL_GRADES,
    "A-LEVEL": A_LEVEL_GRADES,
}

EXAM_TYPE_CONFIGS = {
    "IELTS": {
        "gradingScale": "Band 0-9",
        "description": "International English Language Testing System",
        "subjects": ["Listening", "Reading", "Writing", "Speaking"],
        "gradingCriteria": "IELTS band scoring (0-9 scale with half bands)",
        "maxScore": 9,
        "passScore": 6.0,
    },
    "O-Level": {
        "gradingScale": "A*-G",
        "description": "Cambridge Ordinary Level",
        "subjects": ["Mathematics", "Physics", "Chemistry", "Biology", "English", "Geography", "History"],
        "gradingCriteria": "Cambridge O-Level grading (A*, A, B, C, D, E, F, G)",
        "maxScore": 100,
        "passScore": 40,
    },
    "A-Level": {
        "gradingScale": "A*-E",
        "description": "Cambridge Advanced Level",
        "subjects": ["Mathematics", "Further Mathematics", "Physics", "Chemistry", "Biology",
                     "English Literature", "Economics"],
        "gradingCriteria": "Cambridge A-Level grading (A*, A, B, C, D, E)",
        "maxScore": 100,
        "passScore": 40,
    },
}


def available_exam_types() -> List[str]:
    return list(EXAM_TYPE_CONFIGS.keys())


def grade_table_for(exam_type: str) -> GradeTable:
    """Pick the lookup table for an exam type; anything unrecognised gets the standard table."""
    key = (exam_type or "").strip().upper()
    return GRADE_TABLES.get(key, STANDARD_GRADES)


def map_grade(percentage: float, exam_type: str) -> Grade:
    """Convert a percentage into the exam type's grade and display color."""
    table = grade_table_for(exam_type)
    # NaN compares false against every threshold and lands on the bottom row
    for minimum, grade, color in table:
        if percentage >= minimum:
            return Grade(grade=grade, color=color)
    _, grade, color = table[-1]
    return Grade(grade=grade, color=color)
