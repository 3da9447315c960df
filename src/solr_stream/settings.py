"""Immutable update settings for the write connector."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

NO_AUTO_COMMIT = -1


class UpdateSettings(BaseModel):
    """
    Commit behaviour for a flow.

    ``commit_within`` is the number of milliseconds within which Solr should
    make a batch visible. ``NO_AUTO_COMMIT`` (-1) sends no directive at all,
    so reads only see the writes after an explicit commit.
    """

    model_config = ConfigDict(frozen=True)

    commit_within: int = NO_AUTO_COMMIT

    @field_validator("commit_within")
    @classmethod
    def _validate_commit_within(cls, v):
        if v < NO_AUTO_COMMIT:
            raise ValueError(f"commit_within must be >= 0 or {NO_AUTO_COMMIT}, got {v}")
        return v

    @property
    def auto_commit(self) -> bool:
        return self.commit_within != NO_AUTO_COMMIT

    def with_commit_within(self, commit_within: int) -> "UpdateSettings":
        return UpdateSettings(commit_within=commit_within)
