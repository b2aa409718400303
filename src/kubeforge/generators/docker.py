#!/usr/bin/env python3
"""
KUBEFORGE DOCKERFILE GENERATOR
------------------------------
Renders the image build descriptor for a module. Uber builds copy a single
self-contained executable; thin builds also stage every resolved dependency
under jars/ before the executable.

Author: KubeForge Team
Date: 2026-10-18
"""

from kubeforge.core.models import DockerModel

DEPENDENCY_DIR = "jars"


def generate_dockerfile(docker: DockerModel) -> str:
    lines = [
        "# Auto Generated Dockerfile",
        f"FROM {docker.base_image}",
        "",
        "RUN groupadd --gid 10001 app \\",
        "    && useradd --uid 10001 --gid app --no-create-home app",
        "",
        f"WORKDIR {docker.work_dir}",
    ]
    if not docker.uber_jar and docker.dependency_paths:
        lines.append(f"COPY {DEPENDENCY_DIR}/ {docker.work_dir}/{DEPENDENCY_DIR}/")
    lines.append(f"COPY {docker.executable_name()} {docker.work_dir}/")
    lines.append("")

    if docker.ports:
        lines.append("EXPOSE " + " ".join(str(p) for p in sorted(set(docker.ports))))
        lines.append("")

    lines.append("USER 10001")
    lines.append("")
    lines.append(docker.resolved_cmd())
    return "\n".join(lines) + "\n"
