from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import case, distinct, func
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, server_error
from database.database import get_db
from database.models import File, Project, ProjectInvitation, SearchQuery, SearchResult, User, utcnow

router = APIRouter(prefix="/analytics", tags=["analytics"])

WINDOW_DAYS = 30


def _popular_queries(query):
    rows = (
        query.with_entities(
            SearchQuery.query_text,
            func.count(SearchQuery.id).label("search_count"),
            func.avg(SearchQuery.execution_time_ms).label("avg_time_ms"),
        )
        .group_by(SearchQuery.query_text)
        .order_by(func.count(SearchQuery.id).desc())
        .limit(10)
        .all()
    )
    return [
        {"query_text": text, "search_count": count, "avg_time_ms": avg_time}
        for text, count, avg_time in rows
    ]


def videographer_analytics(db: Session, user: User) -> dict:
    since = utcnow() - timedelta(days=WINDOW_DAYS)

    total_projects, active_projects, shared_projects = (
        db.query(
            func.count(Project.id),
            func.count(case((Project.status == "active", 1))),
            func.count(Project.couple_id),
        )
        .filter(Project.videographer_id == user.id)
        .one()
    )

    total_files, processed_files, total_size = (
        db.query(
            func.count(File.id),
            func.count(case((File.status == "completed", 1))),
            func.sum(File.file_size),
        )
        .join(Project, File.project_id == Project.id)
        .filter(Project.videographer_id == user.id)
        .one()
    )

    recent_queries = (
        db.query(SearchQuery)
        .join(Project, SearchQuery.project_id == Project.id)
        .filter(Project.videographer_id == user.id)
        .filter(SearchQuery.created_at >= since)
    )
    total_searches, unique_searchers, avg_time = recent_queries.with_entities(
        func.count(SearchQuery.id),
        func.count(distinct(SearchQuery.user_id)),
        func.avg(SearchQuery.execution_time_ms),
    ).one()

    activity = []
    for project in db.query(Project).filter(Project.videographer_id == user.id):
        activity.append({
            "activity_type": "project_created",
            "description": project.project_name,
            "timestamp": project.created_at,
        })
    files = db.query(File).join(Project, File.project_id == Project.id).filter(Project.videographer_id == user.id)
    for file in files:
        activity.append({"activity_type": "file_uploaded", "description": file.filename, "timestamp": file.created_at})
    for invitation in db.query(ProjectInvitation).filter(ProjectInvitation.videographer_id == user.id):
        activity.append({
            "activity_type": "project_shared",
            "description": f"Shared {invitation.project.project_name} with {invitation.couple_email}",
            "timestamp": invitation.created_at,
        })
    activity.sort(key=lambda item: item["timestamp"], reverse=True)

    return {
        "userType": "videographer",
        "projectStats": {
            "total_projects": total_projects,
            "active_projects": active_projects,
            "shared_projects": shared_projects,
        },
        "fileStats": {
            "total_files": total_files,
            "processed_files": processed_files,
            "total_size_bytes": total_size or 0,
        },
        "searchStats": {
            "total_searches": total_searches,
            "unique_searchers": unique_searchers,
            "avg_search_time_ms": avg_time,
        },
        "popularQueries": _popular_queries(recent_queries),
        "recentActivity": activity[:20],
    }


def couple_analytics(db: Session, user: User) -> dict:
    since = utcnow() - timedelta(days=WINDOW_DAYS)

    total_projects, active_projects = (
        db.query(func.count(Project.id), func.count(case((Project.status == "active", 1))))
        .filter(Project.couple_id == user.id)
        .one()
    )

    recent_queries = (
        db.query(SearchQuery)
        .filter(SearchQuery.user_id == user.id)
        .filter(SearchQuery.created_at >= since)
    )
    total_searches, avg_time, projects_searched = recent_queries.with_entities(
        func.count(SearchQuery.id),
        func.avg(SearchQuery.execution_time_ms),
        func.count(distinct(SearchQuery.project_id)),
    ).one()

    total_clicks, unique_moments, avg_rank = (
        db.query(
            func.count(SearchResult.id),
            func.count(distinct(SearchResult.video_segment_id)),
            func.avg(SearchResult.rank_position),
        )
        .join(SearchQuery, SearchResult.search_query_id == SearchQuery.id)
        .filter(SearchQuery.user_id == user.id)
        .filter(SearchResult.clicked.is_(True))
        .filter(SearchResult.clicked_at >= since)
        .one()
    )

    recent_searches = (
        db.query(SearchQuery.query_text, SearchQuery.created_at, func.count(SearchResult.id))
        .outerjoin(SearchResult, SearchResult.search_query_id == SearchQuery.id)
        .filter(SearchQuery.user_id == user.id)
        .group_by(SearchQuery.id)
        .order_by(SearchQuery.created_at.desc())
        .limit(10)
        .all()
    )

    return {
        "userType": "couple",
        "projectStats": {"total_projects": total_projects, "active_projects": active_projects},
        "searchStats": {
            "total_searches": total_searches,
            "avg_search_time_ms": avg_time,
            "projects_searched": projects_searched,
        },
        "clickStats": {
            "total_clicks": total_clicks,
            "unique_moments_clicked": unique_moments,
            "avg_result_rank_clicked": avg_rank,
        },
        "popularQueries": _popular_queries(recent_queries),
        "recentSearches": [
            {"query_text": text, "created_at": created_at, "results_found": found}
            for text, created_at, found in recent_searches
        ],
    }


@router.get("")
def get_analytics(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if user.user_type not in ("videographer", "couple"):
        raise HTTPException(status_code=400, detail="Invalid user type")

    try:
        if user.user_type == "videographer":
            return videographer_analytics(db, user)
        return couple_analytics(db, user)
    except Exception as e:
        raise server_error("Failed to fetch analytics", e)
