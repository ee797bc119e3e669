"""Profile models for the ``/api/auth/me`` endpoint.

Contains the backend's canonical profile payload, the optional response
envelope around it, and the normalized user profile the portal works with.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from sikp.auth.client.primitives.roles import normalize_roles, pick_primary_role


class StudentRecord(BaseModel):
    """Student (mahasiswa) sub-record of a profile."""

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    nim: str | None = None
    fakultas: str | None = None
    prodi: str | None = None
    angkatan: str | int | None = None


class LecturerRecord(BaseModel):
    """Lecturer (dosen) sub-record of a profile."""

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    nidn: str | None = None
    fakultas: str | None = None
    prodi: str | None = None


class AdminRecord(BaseModel):
    """Admin sub-record of a profile."""

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None


class ProfilePayload(BaseModel):
    """Profile object as returned by the backend."""

    model_config = ConfigDict(extra="ignore")

    sub: str
    email: str | None = None
    name: str | None = None
    roles: list[str] | None = None
    mahasiswa: StudentRecord | None = None
    dosen: LecturerRecord | None = None
    admin: AdminRecord | None = None


class ProfileEnvelope(BaseModel):
    """``{success, message, data}`` envelope some backend versions return."""

    model_config = ConfigDict(extra="ignore")

    success: bool
    message: str | None = None
    data: ProfilePayload | None = None


class UserProfile(BaseModel):
    """Normalized profile of the signed-in user."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    email: str | None = None
    display_name: str | None = None
    roles: frozenset[str] = Field(default_factory=frozenset)
    primary_role: str
    student: StudentRecord | None = None
    lecturer: LecturerRecord | None = None
    admin: AdminRecord | None = None

    @classmethod
    def from_payload(cls, payload: ProfilePayload) -> UserProfile:
        roles = normalize_roles(payload.roles)
        return cls(
            subject_id=payload.sub,
            email=payload.email,
            display_name=payload.name,
            roles=frozenset(roles),
            primary_role=pick_primary_role(roles),
            student=payload.mahasiswa,
            lecturer=payload.dosen,
            admin=payload.admin,
        )

    @property
    def id(self) -> str | int:
        """Role-specific record id, falling back to the subject id."""
        for record in (self.student, self.lecturer, self.admin):
            if record is not None and record.id is not None:
                return record.id
        return self.subject_id

    @property
    def nim(self) -> str | None:
        return self.student.nim if self.student else None

    @property
    def nip(self) -> str | None:
        return self.lecturer.nidn if self.lecturer else None

    @property
    def faculty(self) -> str | None:
        if self.student and self.student.fakultas is not None:
            return self.student.fakultas
        return self.lecturer.fakultas if self.lecturer else None

    @property
    def study_program(self) -> str | None:
        if self.student and self.student.prodi is not None:
            return self.student.prodi
        return self.lecturer.prodi if self.lecturer else None

    @property
    def cohort(self) -> str | None:
        if self.student is None or self.student.angkatan is None:
            return None
        return str(self.student.angkatan)
