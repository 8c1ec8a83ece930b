"""Request context for question generation."""

from typing import Any, Optional
from pydantic import BaseModel, Field

from api.schemas.question_sets import PositionContext


class GenerationContext(BaseModel):
    """What the generation backend needs to write a relevant, non-repeating question."""

    job_title: str = "Position"
    min_experience: int = 0
    max_experience: int = 0
    mandatory_skills: list[str] = Field(default_factory=list)
    optional_skills: list[str] = Field(default_factory=list)
    previous_questions: list[str] = Field(default_factory=list)

    @classmethod
    def from_position(
        cls,
        position: PositionContext,
        previous_questions: list[str],
    ) -> "GenerationContext":
        return cls(
            job_title=position.title or "Position",
            min_experience=position.min_experience or 0,
            max_experience=position.max_experience or 0,
            mandatory_skills=list(position.mandatory_skills or []),
            optional_skills=list(position.optional_skills or []),
            previous_questions=[q for q in previous_questions if q],
        )

    def to_request(
        self,
        number_of_questions: int = 1,
        company_name: Optional[str] = None,
        question_type: Optional[str] = None,
        stream: Optional[bool] = None,
    ) -> dict[str, Any]:
        """Build the JSON request object sent over the generation channel."""
        request: dict[str, Any] = {
            "jobRole": self.job_title,
            "minYearsOfExperience": self.min_experience,
            "maxYearsOfExperience": self.max_experience,
            "mandatorySkills": self.mandatory_skills,
            "optionalSkills": self.optional_skills,
            "previousQuestions": self.previous_questions,
            "numberOfQuestions": number_of_questions,
        }
        if company_name is not None:
            request["companyName"] = company_name
        if question_type is not None:
            request["questionType"] = question_type
        if stream is not None:
            request["stream"] = stream
        return request
