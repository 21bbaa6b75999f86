from pydantic import BaseModel, Field, field_validator


class SubmissionCreate(BaseModel):
    """Schema for creating a submission"""
    submission_link: str = Field(..., min_length=1, max_length=2048)

    @field_validator("submission_link")
    @classmethod
    def validate_link(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("Submission link must be an http(s) URL")
        return v
