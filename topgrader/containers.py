"""Pull newer versions of locally present container images."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path

from topgrader.command import output_checked_with_utf8
from topgrader.errors import ProcessFailedWithOutput, SkipStep, StepFailed, TopgradeError
from topgrader.execution_context import ExecutionContext

logger = logging.getLogger(__name__)

# Printed for images that cannot be pulled, typically ones tagged locally.
NONEXISTENT_REPO = "repository does not exist"


@dataclass(frozen=True)
class Container:
    """An image identified by ``repository:tag`` and ``os/architecture``."""

    repo_tag: str
    platform: str

    def __str__(self) -> str:
        return f"`{self.repo_tag}` for `{self.platform}`"


def _require(name: str) -> Path:
    found = shutil.which(name)
    if found is None:
        raise SkipStep(f"Cannot find {name} in PATH")
    return Path(found)


def _print_separator(title: str) -> None:
    print(f"\n== {title} ==")


def parse_image_list(output: str, ignored_containers: list[str] | None = None) -> list[tuple[str, str]]:
    """Pairs of ``(repository:tag, image id)`` worth pulling from an image listing."""
    patterns = ignored_containers or []
    images = []
    for line in output.splitlines():
        if line.startswith("localhost"):
            logger.debug("Skipping self-built container '%s'", line)
            continue
        if "<none>" in line:
            logger.debug("Skipping bogus container '%s'", line)
            continue
        if line.startswith("vsc-"):
            logger.debug("Skipping visual studio code dev container '%s'", line)
            continue

        fields = line.split(" ")
        if len(fields) != 2:
            raise ValueError(f"unexpected image listing line: {line!r}")
        repo_tag, image_id = fields

        if any(fnmatchcase(repo_tag, pattern) for pattern in patterns):
            logger.debug("Skipping ignored container '%s'", line)
            continue

        logger.debug("Using container '%s'", line)
        images.append((repo_tag, image_id))
    return images


def list_containers(runtime: str | os.PathLike, ignored_containers: list[str] | None = None) -> list[Container]:
    """Images known to ``runtime`` with their platforms, minus ignored ones."""
    listing = output_checked_with_utf8(
        [runtime, "image", "ls", "--format", "{{.Repository}}:{{.Tag}} {{.ID}}"],
        lambda _: True,
    )
    containers = []
    for repo_tag, image_id in parse_image_list(listing.stdout, ignored_containers):
        inspected = output_checked_with_utf8(
            [runtime, "image", "inspect", image_id, "--format", "{{.Os}}/{{.Architecture}}"],
            lambda _: True,
        )
        platform = inspected.stdout[:-1]
        if "/" not in platform:
            raise ValueError(f"unexpected platform {platform!r} for image {image_id}")
        containers.append(Container(repo_tag, platform))
    return containers


def _is_unknown_repository(executor) -> bool:
    try:
        output = executor.output_checked_utf8()
    except ProcessFailedWithOutput as err:
        return NONEXISTENT_REPO in err.stderr
    except (TopgradeError, OSError, ValueError):
        return False
    return NONEXISTENT_REPO in output.stdout or NONEXISTENT_REPO in output.stderr


def run_containers(ctx: ExecutionContext) -> None:
    """Pull every image with podman, or docker when podman is missing."""
    try:
        runtime = _require("podman")
    except SkipStep:
        runtime = _require("docker")
    logger.debug("Using container runtime '%s'", runtime)

    _print_separator("Containers")
    success = True
    try:
        containers = list_containers(runtime, ctx.config.containers_ignored_tags)
    except (TopgradeError, OSError, ValueError) as err:
        raise RuntimeError("Failed to list Docker containers") from err
    logger.debug("Containers to inspect: %r", containers)

    for container in containers:
        logger.debug("Pulling container '%s'", container)
        executor = ctx.run_type.execute(runtime).args(
            ["pull", container.repo_tag, "--platform", container.platform]
        )
        try:
            executor.status_checked()
        except (TopgradeError, OSError) as err:
            logger.error("Pulling container '%s' failed: %s", container, err)
            if _is_unknown_repository(executor):
                logger.warning("Skipping unknown container '%s'", container)
                continue
            success = False

    if ctx.config.cleanup:
        logger.debug("Removing dangling images")
        try:
            ctx.run_type.execute(runtime).args(["image", "prune", "-f"]).status_checked()
        except (TopgradeError, OSError) as err:
            logger.error("Removing dangling images failed: %s", err)
            success = False

    if not success:
        raise StepFailed()