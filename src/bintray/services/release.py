import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from ..client import BintrayClient
from ..domain.errors import PackageNotFoundError
from ..domain.models import ReleaseReport
from ..ui.progress import ProgressManager

logger = logging.getLogger(__name__)


class ReleaseService:
    """drives a full release: create the version, upload its files, publish."""

    def __init__(self, client: BintrayClient, progress_manager: Optional[ProgressManager] = None):
        self.client = client
        self.progress_manager = progress_manager or ProgressManager()

    def release(
        self,
        subject: str,
        repository: str,
        package: str,
        version: str,
        files: Sequence[Union[str, Path]],
        group_id: str = "",
        artifact_id: str = "",
        maven: bool = False,
        metadata: Optional[Mapping[str, Any]] = None,
        publish: bool = True,
        override: bool = False,
    ) -> ReleaseReport:
        """
        release files as a version of an existing package.

        the version is created only when the package does not list it yet.
        files are uploaded in order; the first failure propagates and nothing
        is published.

        returns:
            report of what was done

        raises:
            PackageNotFoundError: if the package does not exist
        """
        report = ReleaseReport(subject=subject, repository=repository, package=package, version=version)

        with self.progress_manager.spinner(f"Checking {subject}/{repository}/{package}"):
            if not self.client.package_exists(subject, repository, package):
                raise PackageNotFoundError(subject, repository, package)
            versions = self.client.get_versions(subject, repository, package)

        if version in versions:
            logger.info(f"version {version} already exists, skipping creation")
        else:
            with self.progress_manager.spinner(f"Creating version {version}"):
                self.client.create_version(subject, repository, package, version, metadata)
            report.created_version = True

        with self.progress_manager.file_progress(f"Uploading {len(files)} file(s)", len(files)) as tracker:
            for file_path in files:
                target = self.client.upload_file(
                    subject,
                    repository,
                    package,
                    version,
                    file_path,
                    group_id=group_id,
                    artifact_id=artifact_id,
                    maven=maven,
                    override=override,
                )
                report.uploaded.append(target)
                tracker.advance()

        if publish:
            with self.progress_manager.spinner(f"Publishing {package}@{version}"):
                self.client.publish(subject, repository, package, version)
            report.published = True

        return report
