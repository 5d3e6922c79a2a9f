"""
Privacy projections: anyone other than the data subject sees initials and
reputation score only.
"""

from tripcrew.models.user import PublicProfile, SelfProfile


def initials(name: str | None) -> str:
    parts = (name or "").split()
    if not parts:
        return "U"
    if len(parts) == 1:
        return parts[0][0].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def to_public(user_doc: dict | None, user_id: str | None = None) -> PublicProfile:
    """
    Project a user document for a non-subject viewer.
    A missing document still renders (as 'U', score 0) so rosters never break
    on a dangling reference.
    """
    user_doc = user_doc or {}
    return PublicProfile(
        user_id=str(user_doc.get("google_id") or user_id or ""),
        initials=initials(user_doc.get("name")),
        reputation_score=int(user_doc.get("reputation_score") or 0),
    )


def to_self(user_doc: dict) -> SelfProfile:
    return SelfProfile(
        user_id=str(user_doc.get("google_id")),
        initials=initials(user_doc.get("name")),
        reputation_score=int(user_doc.get("reputation_score") or 0),
        name=user_doc.get("name") or "",
        email=user_doc.get("email"),
        picture=user_doc.get("picture"),
    )


def view_for(viewer_id: str, user_doc: dict | None, user_id: str | None = None) -> PublicProfile:
    """Full profile for the subject, public projection for everyone else."""
    subject_id = (user_doc or {}).get("google_id") or user_id
    if user_doc and viewer_id == subject_id:
        return to_self(user_doc)
    return to_public(user_doc, user_id)
