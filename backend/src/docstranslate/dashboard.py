"""
Dashboard summary for the signed-in user.

Each section is loaded independently; a section that fails to load is logged
and shown empty rather than failing the whole profile request.
"""
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .certification import CertificationEngine
from .config import config
from .lifecycle import FileLifecycle
from .logging import logger
from .models import Certificate, FileStatus, TranslatableFile, UserStatistics


def _current_file_summary(file: TranslatableFile) -> Dict[str, Any]:
    return {
        'fileId': file.file_id,
        'projectId': file.project_id,
        'fileName': file.file_name,
        'status': file.status,
        'wordCount': file.word_count,
        'updatedAt': file.updated_at,
    }


def build_dashboard(profile: UserStatistics, current_files: List[TranslatableFile],
                    certificates: List[Certificate]) -> Dict[str, Any]:
    stats = {
        'totalFiles': len(current_files),
        'filesInProgress': len([f for f in current_files if f.status == FileStatus.IN_PROGRESS]),
        'filesPending': len([f for f in current_files if f.status == FileStatus.PENDING_REVIEW]),
        'totalCertificates': len(certificates),
        'wordsTranslated': profile.total_words_translated,
        'approvedTranslations': profile.approved_translations,
        'rejectedTranslations': profile.rejected_translations,
    }
    return {
        'stats': stats,
        'currentFiles': [_current_file_summary(f) for f in current_files],
        'certificates': [c.to_item() for c in certificates],
        'isEmpty': not current_files and not certificates,
    }


class DashboardService:

    def __init__(self, lifecycle: Optional[FileLifecycle] = None,
                 certification: Optional[CertificationEngine] = None):
        self.lifecycle = lifecycle or FileLifecycle()
        self.certification = certification or self.lifecycle.certification

    def summary(self, profile: UserStatistics) -> Dict[str, Any]:
        user_id = profile.user_id
        current_files = self._section(
            'current files', user_id,
            lambda: self.lifecycle.list_assigned_files(user_id, limit=config.DASHBOARD_FILES_LIMIT)
        )
        certificates = self._section(
            'certificates', user_id,
            lambda: self.certification.list_certificates(user_id)[:config.DASHBOARD_CERTIFICATES_LIMIT]
        )
        return build_dashboard(profile, current_files, certificates)

    @staticmethod
    def _section(name: str, user_id: str, load: Callable[[], List]) -> List:
        try:
            return load()
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not load dashboard {name} for {user_id}: {e}")
            return []
