"""Workspace notification settings repository"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_notifications import WorkspaceNotificationSettings


class NotificationSettingsRepository:
    @staticmethod
    def get_by_workspace(db: Session, workspace_id: str) -> Optional[WorkspaceNotificationSettings]:
        return (
            db.query(WorkspaceNotificationSettings)
            .filter(WorkspaceNotificationSettings.workspace_id == workspace_id)
            .first()
        )

    @staticmethod
    def upsert(db: Session, workspace_id: str, **updates) -> WorkspaceNotificationSettings:
        """Create the workspace row on first save, then apply non-None updates"""
        settings = NotificationSettingsRepository.get_by_workspace(db, workspace_id)
        if settings is None:
            settings = WorkspaceNotificationSettings(workspace_id=workspace_id)
            db.add(settings)

        for key, value in updates.items():
            if value is not None and hasattr(settings, key):
                setattr(settings, key, value)

        db.commit()
        db.refresh(settings)
        return settings
