"""
Wire-level data model: the job fetched from the queue and the result posted
back for it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

FAILED = "Failed"


@dataclass(frozen=True)
class Job:
    """One unit of work: an id and the base64 image to analyse."""

    job_id: str
    query_type: str
    encoded_image: str

    @classmethod
    def from_payload(cls, payload: Any) -> "Job":
        """
        Build a Job from the decoded JSON body of a 200 response:

            {"computeModuleJobV1": {"jobId": ..., "queryType": ...,
                                    "query": {"encImgIn": ...}}}

        Raises:
            KeyError / TypeError: if a field is missing or not a string.
        """
        v1 = payload["computeModuleJobV1"]
        job_id = v1["jobId"]
        query_type = v1["queryType"]
        encoded_image = v1["query"]["encImgIn"]
        for name, value in (("jobId", job_id), ("queryType", query_type), ("encImgIn", encoded_image)):
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a string, got {type(value).__name__}")
        return cls(job_id=job_id, query_type=query_type, encoded_image=encoded_image)


@dataclass(frozen=True)
class QueryResult:
    """The single artifact posted back for a job."""

    enc_img_out: str
    text: str
    result: str             # "clean" | "cropped" | "edited" | "editcrop" | "Failed"

    def to_dict(self) -> dict:
        return {
            "encImgOut": self.enc_img_out,
            "text": self.text,
            "result": self.result,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def failed(cls, message: str) -> "QueryResult":
        """Result reported when a job could not be processed."""
        return cls(enc_img_out="", text=message, result=FAILED)
