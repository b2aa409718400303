#!/usr/bin/env python3
"""
KUBEFORGE WORKLOAD PROCESSORS
-----------------------------
HorizontalPodAutoscaler and Job annotations. Both refer to their target
workload by name only, so the validator can report dangling references.

Author: KubeForge Team
Date: 2026-10-18
"""

import copy
from typing import Any, Dict

from kubeforge.core.errors import SchemaError
from kubeforge.core.models import HPA_POSTFIX, JOB_POSTFIX, HPAModel, JobModel, ModuleDeploymentContext
from kubeforge.core.targets import AnnotationKind, FunctionTarget
from kubeforge.core.utils import get_valid_name
from kubeforge.processors.base import (
    AnnotationProcessor, get_choice, get_int, get_map, get_str, parse_env, valid_name
)
from kubeforge.processors.deployment import PULL_POLICIES

RESTART_POLICIES = ("Never", "OnFailure")


class HPAAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.HPA
    known_keys = ("name", "labels", "annotations", "minReplicas", "maxReplicas",
                  "cpuPercentage", "memoryPercentage", "deployment")

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        owner = target.name
        deployment = get_str(data, "deployment", owner)
        if deployment is not None:
            deployment = valid_name(deployment, owner)

        # One autoscaler per target deployment; repeated annotations merge
        key = deployment or ""
        existing = ctx.hpas.get(key)
        if existing is not None:
            hpa = copy.deepcopy(existing)
        else:
            hpa = HPAModel(name=get_valid_name(ctx.base_name(), HPA_POSTFIX),
                           deployment=deployment, labels={"app": ctx.base_name()})

        if "name" in data:
            hpa.name = valid_name(get_str(data, "name", owner), owner)
        hpa.labels.update(get_map(data, "labels", owner))
        hpa.annotations.update(get_map(data, "annotations", owner))
        hpa.annotations.update(self.passthrough(data, owner))
        hpa.min_replicas = get_int(data, "minReplicas", owner, hpa.min_replicas, minimum=1)
        hpa.max_replicas = get_int(data, "maxReplicas", owner, hpa.max_replicas, minimum=1)
        hpa.cpu_percentage = get_int(data, "cpuPercentage", owner, hpa.cpu_percentage, minimum=1)
        hpa.memory_percentage = get_int(data, "memoryPercentage", owner, hpa.memory_percentage,
                                        minimum=1)
        if (hpa.min_replicas is not None and hpa.max_replicas is not None
                and hpa.max_replicas < hpa.min_replicas):
            raise SchemaError(f"maxReplicas ({hpa.max_replicas}) is lower than "
                              f"minReplicas ({hpa.min_replicas})", owner)
        ctx.hpas[key] = hpa


class JobAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.JOB
    supported_targets = (FunctionTarget,)
    known_keys = ("name", "labels", "annotations", "image", "imagePullPolicy", "restartPolicy",
                  "backoffLimit", "activeDeadlineSeconds", "schedule", "env")

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        owner = target.name
        existing = ctx.jobs.get(target.name)
        if existing is not None:
            job = copy.deepcopy(existing)
        else:
            job = JobModel(name=get_valid_name(ctx.base_name(), JOB_POSTFIX))

        if "name" in data:
            job.name = valid_name(get_str(data, "name", owner), owner)
        job.labels.update(get_map(data, "labels", owner))
        job.annotations.update(get_map(data, "annotations", owner))
        job.annotations.update(self.passthrough(data, owner))
        job.image = get_str(data, "image", owner, job.image)
        job.image_pull_policy = get_choice(data, "imagePullPolicy", owner, PULL_POLICIES,
                                           job.image_pull_policy)
        job.restart_policy = get_choice(data, "restartPolicy", owner, RESTART_POLICIES,
                                        job.restart_policy)
        job.backoff_limit = get_int(data, "backoffLimit", owner, job.backoff_limit, minimum=0)
        job.active_deadline_seconds = get_int(data, "activeDeadlineSeconds", owner,
                                              job.active_deadline_seconds, minimum=1)
        job.schedule = get_str(data, "schedule", owner, job.schedule)
        job.env.update(parse_env(data, owner))
        ctx.jobs[target.name] = job
