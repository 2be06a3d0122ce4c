from __future__ import annotations

import uuid

from django.core.files.base import ContentFile
from django.core.management.base import BaseCommand, CommandError

from svg_image.detection import is_svg
from svg_image.files import FileItem, FileUnavailable, StorageFileGateway, normalize_storage_path
from svg_image.markup import post_process
from svg_image.sanitizer import SanitizationFailure, SvgSanitizer


class Command(BaseCommand):
    help = "Sanitize SVG files in storage. Preview only by default; add --apply to rewrite files."

    def add_arguments(self, parser):
        parser.add_argument("paths", nargs="*", help="Storage URIs or paths of the files to check.")
        parser.add_argument(
            "--dir",
            dest="directory",
            default=None,
            help="Check every file directly inside this storage directory.",
        )
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Rewrite files whose sanitized markup differs (default only lists them).",
        )

    def handle(self, *args, **options):
        apply = bool(options.get("apply"))
        gateway = StorageFileGateway()
        sanitizer = SvgSanitizer()

        uris = list(options.get("paths") or [])
        directory = options.get("directory")
        if directory is not None:
            uris.extend(self._list_directory(gateway, directory))
        if not uris:
            raise CommandError("Pass at least one path or --dir.")

        changed: list[tuple[str, str, bytes]] = []
        failed = 0
        skipped = 0
        for uri in uris:
            file = FileItem(file_id=uri, uri=uri)
            loaded = gateway.load(file)
            if isinstance(loaded, FileUnavailable):
                self.stdout.write(self.style.ERROR(f"unavailable ({loaded.reason}): {uri}"))
                failed += 1
                continue
            if not is_svg(loaded):
                self.stdout.write(f"not svg: {uri}")
                skipped += 1
                continue
            sanitized = sanitizer.sanitize(loaded.content or b"")
            if isinstance(sanitized, SanitizationFailure):
                self.stdout.write(self.style.ERROR(f"cannot sanitize ({sanitized.reason}): {uri}"))
                failed += 1
                continue
            cleaned = str(post_process(sanitized))
            if cleaned.encode("utf-8") == (loaded.content or b"").strip():
                continue
            changed.append((uri, cleaned, loaded.content or b""))
            self.stdout.write(f"- {uri}")

        summary = f"{len(changed)} to rewrite, {failed} failed, {skipped} not SVG."
        if not changed:
            self.stdout.write(self.style.SUCCESS(f"Nothing to rewrite. {summary}"))
            return
        if not apply:
            self.stdout.write(self.style.WARNING(f"Preview mode: {summary} Add --apply to rewrite."))
            return

        rewritten = 0
        for uri, cleaned, original in changed:
            storage, path = gateway.resolve(uri)
            if storage is None:
                continue
            error = self._replace(storage, path, cleaned.encode("utf-8"), original)
            if error:
                self.stdout.write(self.style.ERROR(f"rewrite failed {uri}: {error}"))
                continue
            rewritten += 1
        self.stdout.write(self.style.SUCCESS(f"Rewrote {rewritten} file(s). {summary}"))

    def _replace(self, storage, path: str, data: bytes, original: bytes) -> str | None:
        """Swap ``path`` for ``data``; a failed swap restores ``original``. Returns an error or None."""
        directory, _, name = path.rpartition("/")
        staging = f"{directory}/.{name}.{uuid.uuid4().hex}" if directory else f".{name}.{uuid.uuid4().hex}"
        try:
            staged = storage.save(staging, ContentFile(data))
        except OSError as exc:
            return f"cannot stage sanitized copy: {exc}"

        try:
            storage.delete(path)
            saved = storage.save(path, ContentFile(data))
        except OSError as exc:
            saved, error = None, str(exc)
        else:
            error = None if saved == path else f"storage saved it as {saved}"

        if error is None:
            storage.delete(staged)
            return None
        try:
            if saved:
                storage.delete(saved)
            if not storage.exists(path):
                storage.save(path, ContentFile(original))
        except OSError as exc:
            return f"{error}; original not restored ({exc}), sanitized copy kept at {staged}"
        storage.delete(staged)
        return error

    def _list_directory(self, gateway: StorageFileGateway, directory: str) -> list[str]:
        storage, path = gateway.resolve(directory)
        if storage is None:
            raise CommandError(f"No storage configured for {directory}")
        try:
            _, files = storage.listdir(path)
        except (FileNotFoundError, NotImplementedError) as exc:
            raise CommandError(f"Cannot list {directory}: {exc}") from exc
        if not directory or directory.endswith("://"):
            prefix = directory
        else:
            prefix = directory.rstrip("/") + "/"
        return [prefix + normalize_storage_path(name) for name in sorted(files)]
