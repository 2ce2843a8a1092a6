# api/v1/schemas/reco.py
from typing import List
from pydantic import BaseModel

from recoengine.domain.models.product import CandidateProduct
from recoengine.domain.models.user import SimilarUser


class CandidateListOut(BaseModel):
    items: List[CandidateProduct]
    count: int

    @classmethod
    def of(cls, items: List[CandidateProduct]) -> "CandidateListOut":
        return cls(items=items, count=len(items))


class SimilarUsersOut(BaseModel):
    user_id: str
    items: List[SimilarUser]
    count: int
