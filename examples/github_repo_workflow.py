"""
Workflow: What landed last on a GitHub repo's default branch?

Chain:
    step_1 (repo metadata)      -> default_branch, owner_login
    step_2 (branch head)        -> head_sha
    step_3 (commit for head)    -> author, message

GitHub's REST API is keyless for public repos (60 req/hr).
Set GITHUB_TOKEN to send it as a bearer token instead.
"""

import json
import os
import sys

from api_chaining.executor.workflow_engine import WorkflowEngine
from api_chaining.models.workflow import (
    AuthType,
    VariableExtraction,
    WorkflowAuth,
    WorkflowDefinition,
    WorkflowRequest,
    WorkflowStep,
)
from api_chaining.serialization.workflow_io import export_workflow


def build_workflow(owner: str, repo: str) -> WorkflowDefinition:
    token = os.environ.get("GITHUB_TOKEN")
    auth = WorkflowAuth(type=AuthType.BEARER, token=token) if token else WorkflowAuth()
    headers = {"Accept": "application/vnd.github+json"}

    return WorkflowDefinition(
        name=f"Latest commit on {owner}/{repo}",
        server_url="https://api.github.com",
        shared_auth=auth,
        steps=[
            WorkflowStep(
                id="step_1",
                order=0,
                name="Repo metadata",
                request=WorkflowRequest(path=f"/repos/{owner}/{repo}", headers=headers),
                extractions=[
                    VariableExtraction(id="x1", name="default_branch", json_path="$.default_branch"),
                    VariableExtraction(id="x2", name="owner_login", json_path="$.owner.login"),
                ],
            ),
            WorkflowStep(
                id="step_2",
                order=1,
                name="Branch head",
                request=WorkflowRequest(
                    path=f"/repos/{{{{owner_login}}}}/{repo}/branches/{{{{default_branch}}}}",
                    headers=headers,
                ),
                extractions=[
                    VariableExtraction(id="x3", name="head_sha", json_path="$.commit.sha"),
                ],
            ),
            WorkflowStep(
                id="step_3",
                order=2,
                name="Head commit",
                request=WorkflowRequest(
                    path=f"/repos/{{{{owner_login}}}}/{repo}/commits/{{{{head_sha}}}}",
                    headers=headers,
                ),
                extractions=[
                    VariableExtraction(id="x4", name="author", json_path="$.commit.author.name"),
                    VariableExtraction(id="x5", name="message", json_path="$.commit.message"),
                ],
            ),
        ],
    )


def main():
    owner, repo = (sys.argv[1:3] + ["psf", "requests"][len(sys.argv[1:3]):])[:2]
    workflow = build_workflow(owner, repo)

    print(f"=== Workflow: {workflow.name} ===")
    print(export_workflow(workflow))
    print()

    def on_step_start(index):
        print(f"--> {workflow.steps[index].name}")

    execution = WorkflowEngine().execute(workflow, on_step_start=on_step_start)

    print(f"\n=== Execution result: {execution.status.value} ===")
    for r in execution.results:
        print(f"\n--- {r.step_id} [{r.status.value}] ---")
        if r.error:
            print(f"  ERROR: {r.error}")
        for warning in r.warnings:
            print(f"  WARNING: {warning}")
        if r.extracted_variables:
            print(json.dumps(r.extracted_variables, indent=2, default=str)[:800])


if __name__ == "__main__":
    main()
