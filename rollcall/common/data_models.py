"""Pydantic data models for decoded results.

This module contains the models the decoder produces and the bulk
strategies return. Records are mutable: the fetcher appends extended-path
semesters to a primary record after it's decoded.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class SubjectResult(BaseModel):
    """One subject within a semester.

    ``cgpi`` is ``points / credit``. Subjects with zero credit (audit
    courses, some labs) have no defined ratio, so ``cgpi`` is None for them.
    """

    subject_name: str = ""
    subject_code: str = ""
    grade: str = ""
    credit: int = 0
    points: int = 0
    cgpi: float | None = None

    @classmethod
    def from_cells(
        cls,
        subject_name: str,
        subject_code: str,
        credit: int,
        grade: str,
        points: int,
    ) -> SubjectResult:
        """Build a subject row, deriving cgpi from points and credit."""
        return cls(
            subject_name=subject_name,
            subject_code=subject_code,
            grade=grade,
            credit=credit,
            points=points,
            cgpi=points / credit if credit else None,
        )


class SemesterResult(BaseModel):
    """One term's subjects plus its summary scores."""

    semester_number: str
    subject_results: list[SubjectResult] = Field(default_factory=list)
    sgpi: float = 0.0
    sgpi_total: int = 0
    cgpi: float = 0.0
    cgpi_total: int = 0


class StudentRecord(BaseModel):
    """One student's full academic history as published by the result site."""

    roll_number: str
    name: str = ""
    fathers_name: str = ""
    branch: str = ""
    programme: str = ""
    batch: int = 0
    cgpi: float = 0.0
    semester_results: list[SemesterResult] = Field(default_factory=list)

    def merge_extended(self, extended: StudentRecord) -> None:
        """Append an extended-path record's semesters to this record.

        Extended semesters are relabelled ``Masters Sem 01``, ``02``... in
        their own order. This record's labels are left untouched. The
        cumulative CGPI is raised to the extended record's if it's higher.
        """
        for index, semester in enumerate(extended.semester_results, start=1):
            semester.semester_number = f"Masters Sem 0{index}"
            self.semester_results.append(semester)
        if extended.cgpi > self.cgpi:
            self.cgpi = extended.cgpi


class ScrapeOutcome(BaseModel):
    """Per-roll-number result of a bulk scrape.

    Exactly one of ``record`` and ``error`` is set.

    Attributes:
        roll_number: The requested roll number.
        record: The decoded record on success.
        error: The error message on failure.
        error_kind: Class name of the classified error (``RollNumberNotFound``,
            ``RetriesExhausted``...), None on success.
        attempts: How many fetch attempts were made.
    """

    roll_number: str
    record: StudentRecord | None = None
    error: str | None = None
    error_kind: str | None = None
    attempts: int = 1

    @model_validator(mode="after")
    def _check_exactly_one(self) -> ScrapeOutcome:
        if (self.record is None) == (self.error is None):
            raise ValueError(
                "ScrapeOutcome needs exactly one of record or error"
            )
        return self

    @property
    def ok(self) -> bool:
        return self.record is not None

    @classmethod
    def success(
        cls, roll_number: str, record: StudentRecord, attempts: int = 1
    ) -> ScrapeOutcome:
        return cls(roll_number=roll_number, record=record, attempts=attempts)

    @classmethod
    def failure(
        cls,
        roll_number: str,
        error: BaseException | str,
        error_kind: str | None = None,
        attempts: int = 1,
    ) -> ScrapeOutcome:
        if error_kind is None:
            error_kind = (
                type(error).__name__
                if isinstance(error, BaseException)
                else "Error"
            )
        return cls(
            roll_number=roll_number,
            error=str(error) or error_kind,
            error_kind=error_kind,
            attempts=attempts,
        )
