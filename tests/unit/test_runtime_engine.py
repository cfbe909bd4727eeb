from __future__ import annotations

import http.client
import io
import logging
import os
from pathlib import Path

import pytest

from services.runtime.catalog import ReleaseCatalogClient
from services.runtime.engine import AcquisitionEngine
from services.runtime.filesystem import FileSystemGateway
from services.runtime.models import (
    AcquisitionRequest,
    CorruptInstallError,
    FetchError,
    HttpStatusError,
    ImageKind,
    InstallationError,
    IntegrityError,
    InvalidRequestError,
    ReleaseType,
    UnsupportedFormatError,
)
from tests.unit.runtime_test_utils import (
    DOWNLOAD_URL,
    RELEASE_NAME,
    RUNTIME_FOLDER,
    FakeFetcher,
    build_tar_gz,
    build_zip,
    install_dir_name,
    make_fake_install,
    release_document,
    sha256_of,
)

CATALOG_URL = "https://api.test/v3"
LATEST_URL = f"{CATALOG_URL}/assets/feature_releases/16/ga"
BY_NAME_URL = f"{CATALOG_URL}/assets/release_name/adoptopenjdk/{RELEASE_NAME}"
NAMES_URL = f"{CATALOG_URL}/info/release_names"


def _engine(fetcher: FakeFetcher, filesystem: FileSystemGateway | None = None, **kwargs) -> AcquisitionEngine:
    catalog = ReleaseCatalogClient(fetcher, base_url=CATALOG_URL)
    return AcquisitionEngine(catalog, fetcher, filesystem or FileSystemGateway(), **kwargs)


def _request(install_root: Path, **overrides) -> AcquisitionRequest:
    values = {
        "architecture": "x64",
        "os": "linux",
        "image_kind": ImageKind.JRE,
        "major_version": 16,
        "install_root": install_root,
    }
    values.update(overrides)
    return AcquisitionRequest(**values)


def _serve_release(
    tmp_path: Path,
    *,
    metadata_url: str = LATEST_URL,
    archive_name: str = "OpenJDK16U-jre_x64_linux_hotspot_16.0.1_9.tar.gz",
    entries: dict[str, bytes] | None = None,
    checksum: str | None = None,
    root_folder: str = RUNTIME_FOLDER,
) -> FakeFetcher:
    served = tmp_path / "served" / archive_name
    served.parent.mkdir(parents=True, exist_ok=True)
    if archive_name.endswith(".zip"):
        build_zip(served, entries, root_folder=root_folder)
    else:
        build_tar_gz(served, entries, root_folder=root_folder)
    document = release_document(
        package_name=archive_name,
        checksum=checksum or sha256_of(served),
        size=served.stat().st_size,
    )
    payload = [document] if metadata_url == LATEST_URL else document
    return FakeFetcher({metadata_url: payload, DOWNLOAD_URL: served.read_bytes()})


def test_acquire_downloads_verifies_and_installs_latest_release(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path)
    root = tmp_path / "java"

    result = _engine(fetcher).acquire(_request(root))

    expected_install = root / "jre" / "16" / "linux_x64" / install_dir_name()
    assert result.install_path == expected_install
    assert result.runtime_home == expected_install / RUNTIME_FOLDER
    assert (result.runtime_home / "bin" / "java").is_file()
    assert (result.runtime_home / "lib" / "classlist").is_file()
    assert list((root / "jre" / "downloads").iterdir()) == []
    assert sorted(path.name for path in expected_install.parent.iterdir()) == [expected_install.name]
    assert result.cleanup_warnings == ()

    metadata_url, params, headers = fetcher.calls[0]
    assert metadata_url == LATEST_URL
    assert params == {
        "project": "jdk",
        "sort_method": "DATE",
        "sort_order": "DESC",
        "page": "0",
        "page_size": "1",
        "jvm_impl": "hotspot",
        "image_type": "jre",
        "vendor": "adoptopenjdk",
        "architecture": "x64",
        "os": "linux",
    }
    assert headers == {"accept": "application/json"}
    assert fetcher.calls[1] == (DOWNLOAD_URL, {}, {})


def test_acquire_from_zip_archive(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path, archive_name="OpenJDK16U-jre_x64_windows_hotspot_16.0.1_9.zip")

    root = tmp_path / "java"

    result = _engine(fetcher).acquire(_request(root, os="windows"))

    expected_install = root / "jre" / "16" / "windows_x64" / install_dir_name(os_arch="windows_x64")
    assert result.install_path == expected_install
    assert result.runtime_home == expected_install / RUNTIME_FOLDER
    assert (result.runtime_home / "bin" / "java").is_file()
    assert fetcher.urls() == [LATEST_URL, DOWNLOAD_URL]
    assert fetcher.calls[0][1]["os"] == "windows"


def test_second_acquire_is_served_from_local_cache(tmp_path: Path) -> None:
    root = tmp_path / "java"
    first = _engine(_serve_release(tmp_path)).acquire(_request(root))

    offline = FakeFetcher()
    second = _engine(offline).acquire(_request(root))

    assert second == first
    assert offline.calls == []


def test_exact_release_request_reuses_install_from_major_version_request(tmp_path: Path) -> None:
    root = tmp_path / "java"
    first = _engine(_serve_release(tmp_path)).acquire(_request(root))

    offline = FakeFetcher()
    second = _engine(offline).acquire(
        _request(root, major_version=None, exact_release_name=RELEASE_NAME)
    )

    assert second.install_path == first.install_path
    assert offline.calls == []


def test_progress_callback_receives_every_chunk(tmp_path: Path) -> None:
    entries = {"bin/java": os.urandom(40_000)}
    fetcher = _serve_release(tmp_path, entries=entries)
    chunks: list[int] = []

    _engine(fetcher).acquire(_request(tmp_path / "java"), progress=chunks.append)

    served = tmp_path / "served" / "OpenJDK16U-jre_x64_linux_hotspot_16.0.1_9.tar.gz"
    assert sum(chunks) == served.stat().st_size
    assert len(chunks) > 1
    assert all(0 < chunk <= 8192 for chunk in chunks)


def test_progress_factory_is_used_when_no_callback_given(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path)
    created: list[tuple[int, str]] = []
    received: list[int] = []

    def factory(total: int, prefix: str):
        created.append((total, prefix))
        return received.append

    _engine(fetcher, progress_factory=factory).acquire(_request(tmp_path / "java"))

    served = tmp_path / "served" / "OpenJDK16U-jre_x64_linux_hotspot_16.0.1_9.tar.gz"
    assert created == [(served.stat().st_size, "Downloading OpenJDK16U-jre_x64_linux_hotspot_16.0.1_9.tar.gz")]
    assert sum(received) == served.stat().st_size


def test_checksum_mismatch_leaves_no_install_and_removes_archive(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path, checksum="f" * 64)
    root = tmp_path / "java"

    with pytest.raises(IntegrityError, match="Invalid checksum"):
        _engine(fetcher).acquire(_request(root))

    assert list((root / "jre" / "downloads").iterdir()) == []
    assert not (root / "jre" / "16" / "linux_x64" / install_dir_name()).exists()


def test_checksum_comparison_ignores_case(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path)
    package = fetcher.responses[LATEST_URL][0]["binaries"][0]["package"]
    package["checksum"] = package["checksum"].upper()

    result = _engine(fetcher).acquire(_request(tmp_path / "java"))

    assert result.runtime_home.is_dir()


def test_unsupported_archive_format_is_rejected_and_cleaned(tmp_path: Path) -> None:
    served = tmp_path / "payload.7z"
    served.write_bytes(b"not an archive")
    fetcher = FakeFetcher(
        {
            LATEST_URL: [
                release_document(
                    package_name="payload.7z",
                    checksum=sha256_of(served),
                    size=served.stat().st_size,
                )
            ],
            DOWNLOAD_URL: served.read_bytes(),
        }
    )
    root = tmp_path / "java"

    with pytest.raises(UnsupportedFormatError):
        _engine(fetcher).acquire(_request(root))

    assert list((root / "jre" / "downloads").iterdir()) == []
    version_folder = root / "jre" / "16" / "linux_x64"
    assert not version_folder.exists() or list(version_folder.iterdir()) == []


def test_local_probe_picks_most_recent_timestamp(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    make_fake_install(folder, install_dir_name("jdk-16+36", "2021-03-17T10:00:00Z"))
    newest = make_fake_install(folder, install_dir_name("jdk-16.0.1+9", "2021-04-23T09:10:06Z"))
    make_fake_install(folder, install_dir_name("jdk-16.0.2+7", "2021-02-01T08:00:00Z"))
    (folder / "jdk-16.0.3+1--not-a-timestamp--linux_x64").mkdir()
    offline = FakeFetcher()

    result = _engine(offline).acquire(_request(root, prune_other_versions=False))

    assert result.install_path == newest
    assert offline.calls == []
    assert len(list(folder.iterdir())) == 4


def test_pruning_keeps_only_selected_install(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    make_fake_install(folder, install_dir_name("jdk-16+36", "2021-03-17T10:00:00Z"))
    newest = make_fake_install(folder, install_dir_name("jdk-16.0.1+9", "2021-04-23T09:10:06Z"))
    make_fake_install(folder, install_dir_name("jdk-16.0.2+7", "2021-02-01T08:00:00Z"))

    result = _engine(FakeFetcher()).acquire(_request(root))

    assert result.install_path == newest
    assert [path.name for path in folder.iterdir()] == [newest.name]


def test_invalid_local_install_triggers_download(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    broken = make_fake_install(folder, install_dir_name(), with_java=False)
    fetcher = _serve_release(tmp_path)

    result = _engine(fetcher).acquire(_request(root))

    assert result.install_path == broken
    assert (result.runtime_home / "bin" / "java").is_file()
    assert DOWNLOAD_URL in fetcher.urls()


def test_exact_release_probe_does_not_match_longer_release_names(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    make_fake_install(folder, install_dir_name("jdk-16.0.1+90", "2021-06-01T00:00:00Z"))
    fetcher = _serve_release(tmp_path, metadata_url=BY_NAME_URL)

    result = _engine(fetcher).acquire(
        _request(root, major_version=None, exact_release_name=RELEASE_NAME, prune_other_versions=False)
    )

    assert result.install_path == folder / install_dir_name()
    assert fetcher.calls[0][0] == BY_NAME_URL


def test_exact_release_lookup_uses_release_name_endpoint(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path, metadata_url=BY_NAME_URL)

    result = _engine(fetcher).acquire(
        _request(tmp_path / "java", major_version=8, exact_release_name=RELEASE_NAME)
    )

    assert result.install_path.parent == tmp_path / "java" / "jre" / "16" / "linux_x64"
    url, params, _headers = fetcher.calls[0]
    assert url == BY_NAME_URL
    assert params == {
        "project": "jdk",
        "jvm_impl": "hotspot",
        "image_type": "jre",
        "architecture": "x64",
        "os": "linux",
    }


def test_force_latest_check_skips_download_when_latest_is_installed(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    installed = make_fake_install(folder, install_dir_name())
    fetcher = FakeFetcher({LATEST_URL: [release_document()]})

    result = _engine(fetcher).acquire(_request(root, force_latest_check=True))

    assert result.install_path == installed
    assert fetcher.urls() == [LATEST_URL]


def test_force_latest_check_installs_newer_release(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    make_fake_install(folder, install_dir_name("jdk-16+36", "2021-03-17T10:00:00Z"))
    fetcher = _serve_release(tmp_path)
    caplog.set_level(logging.INFO)

    result = _engine(fetcher).acquire(_request(root, force_latest_check=True))

    assert result.install_path == folder / install_dir_name()
    assert [path.name for path in folder.iterdir()] == [install_dir_name()]
    assert "Newer jre release jdk-16.0.1+9 available, installed is jdk-16+36" in caplog.text


def test_pruning_disabled_keeps_other_installs(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    older = make_fake_install(folder, install_dir_name("jdk-16+36", "2021-03-17T10:00:00Z"))
    fetcher = _serve_release(tmp_path)

    _engine(fetcher).acquire(_request(root, force_latest_check=True, prune_other_versions=False))

    assert older.exists()
    assert (folder / install_dir_name()).exists()


def test_mac_runtime_home_points_inside_bundle(tmp_path: Path) -> None:
    entries = {
        "Contents/Home/bin/java": b"binary",
        "Contents/Info.plist": b"<plist/>",
    }
    fetcher = _serve_release(tmp_path, entries=entries, root_folder="jdk-16.0.1+9-jre")

    result = _engine(fetcher).acquire(_request(tmp_path / "java", os="mac"))

    assert result.runtime_home == result.install_path / "jdk-16.0.1+9-jre" / "Contents" / "Home"
    assert (result.runtime_home / "bin" / "java").is_file()


def test_stale_temporary_folder_is_replaced(tmp_path: Path) -> None:
    root = tmp_path / "java"
    folder = root / "jre" / "16" / "linux_x64"
    stale = folder / f"{install_dir_name()}_temporary"
    (stale / "leftover").mkdir(parents=True)
    fetcher = _serve_release(tmp_path)

    result = _engine(fetcher).acquire(_request(root, prune_other_versions=False))

    assert not stale.exists()
    assert not (result.install_path / "leftover").exists()


class _FailingMoveGateway(FileSystemGateway):
    def move(self, source: Path, target: Path) -> None:
        raise OSError("disk full")


def test_failed_move_rolls_back_install_directory(tmp_path: Path) -> None:
    root = tmp_path / "java"
    fetcher = _serve_release(tmp_path)

    with pytest.raises(InstallationError, match="disk full"):
        _engine(fetcher, _FailingMoveGateway()).acquire(_request(root))

    folder = root / "jre" / "16" / "linux_x64"
    assert list(folder.iterdir()) == []
    assert list((root / "jre" / "downloads").iterdir()) == []


def test_install_without_runtime_folder_is_reported_as_corrupt(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path)

    def flat_extractor(archive_path: Path, target_dir: Path) -> None:
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / "README").write_text("no runtime here", encoding="utf-8")

    with pytest.raises(CorruptInstallError):
        _engine(fetcher, extractor=flat_extractor).acquire(_request(tmp_path / "java"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"architecture": ""},
        {"os": "  "},
        {"major_version": None},
        {"major_version": 0},
        {"major_version": None, "exact_release_name": "16.0.1"},
        {"image_kind": "jsk"},
        {"image_kind": None},
    ],
)
def test_invalid_requests_are_rejected_before_any_network_call(
    tmp_path: Path, overrides: dict
) -> None:
    fetcher = FakeFetcher()

    with pytest.raises(InvalidRequestError):
        _engine(fetcher).acquire(_request(tmp_path / "java", **overrides))

    assert fetcher.calls == []


def _names_page(names: list[str]) -> dict:
    return {"releases": names}


def test_list_all_release_names_stops_at_missing_page() -> None:
    pages = {
        "0": [f"jdk-16.0.{index}" for index in range(20)],
        "1": [f"jdk-15.0.{index}" for index in range(20)],
    }

    def respond(params: dict[str, str]):
        page = pages.get(params["page"])
        if page is None:
            return HttpStatusError(404, NAMES_URL, "page out of range")
        return _names_page(page)

    fetcher = FakeFetcher({NAMES_URL: respond})

    names = _engine(fetcher).list_all_release_names()

    assert names == pages["0"] + pages["1"]
    assert [params["page"] for _url, params, _headers in fetcher.calls] == ["0", "1", "2"]
    assert fetcher.calls[0][1] == {
        "sort_method": "DEFAULT",
        "sort_order": "DESC",
        "page": "0",
        "page_size": "20",
        "release_type": "ga",
        "vendor": "adoptopenjdk",
    }


def test_list_all_release_names_stops_at_short_page() -> None:
    pages = {"0": [f"jdk-{index}" for index in range(20)], "1": ["jdk-8u292-b10", "jdk-11.0.11+9"]}
    fetcher = FakeFetcher({NAMES_URL: lambda params: _names_page(pages[params["page"]])})

    names = _engine(fetcher).list_all_release_names(ReleaseType.EARLY_ACCESS)

    assert len(names) == 22
    assert len(fetcher.calls) == 2
    assert fetcher.calls[1][1]["release_type"] == "ea"


def test_list_all_release_names_propagates_server_errors() -> None:
    fetcher = FakeFetcher({NAMES_URL: HttpStatusError(500, NAMES_URL, "boom")})

    with pytest.raises(HttpStatusError) as excinfo:
        _engine(fetcher).list_all_release_names()

    assert excinfo.value.status_code == 500


class _StalledStream(io.BytesIO):
    def read(self, size=-1):
        if self.tell() >= 8192:
            raise TimeoutError("read timed out")
        return super().read(size)


def test_interrupted_download_is_reported_and_cleaned(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path)
    payload = fetcher.responses[DOWNLOAD_URL]
    fetcher.responses[DOWNLOAD_URL] = lambda _params: _StalledStream(payload)
    root = tmp_path / "java"

    with pytest.raises(FetchError, match="read timed out"):
        _engine(fetcher).acquire(_request(root))

    assert list((root / "jre" / "downloads").iterdir()) == []


class _TruncatedStream(io.BytesIO):
    def read(self, size=-1):
        if self.tell() >= 100:
            raise http.client.IncompleteRead(b"", 1000)
        return super().read(min(size, 100 - self.tell()))


def test_truncated_download_is_reported_as_fetch_error(tmp_path: Path) -> None:
    fetcher = _serve_release(tmp_path)
    payload = fetcher.responses[DOWNLOAD_URL]
    fetcher.responses[DOWNLOAD_URL] = lambda _params: _TruncatedStream(payload)
    root = tmp_path / "java"

    with pytest.raises(FetchError, match="IncompleteRead"):
        _engine(fetcher).acquire(_request(root))

    assert list((root / "jre" / "downloads").iterdir()) == []
    assert not (root / "jre" / "16" / "linux_x64" / install_dir_name()).exists()


class _RecordingGateway(FileSystemGateway):
    def __init__(self) -> None:
        self.reads: list[Path] = []

    def open_for_read(self, path: Path):
        self.reads.append(path)
        return super().open_for_read(path)


def test_archive_digest_is_read_through_filesystem_gateway(tmp_path: Path) -> None:
    gateway = _RecordingGateway()
    root = tmp_path / "java"

    _engine(_serve_release(tmp_path), gateway).acquire(_request(root))

    archive = root / "jre" / "downloads" / "OpenJDK16U-jre_x64_linux_hotspot_16.0.1_9.tar.gz"
    assert archive.absolute() in gateway.reads
