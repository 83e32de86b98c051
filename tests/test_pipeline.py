"""End-to-end tests of the research pipeline and case lifecycle."""

import asyncio
import json

import pytest

from legal_research.agents import BaseAgent, ExecutionContext, LegalResearchOrchestrator
from legal_research.agents.research_agents import (
    NO_RESULTS,
    SEARCH_DISABLED,
    SEARCH_FAILED,
    AssociateAgent,
    WebResearcherAgent,
)
from legal_research.llm import LLMGateway
from legal_research.models.schemas import AgentAction, AgentName, CaseStatus, WorkflowResult
from legal_research.services.case_lifecycle import CaseLifecycleController, as_text, parse_verdict
from legal_research.services.error_handling import (
    CaseAlreadyProcessingError,
    CaseNotFoundError,
    LLMGatewayError,
)
from legal_research.services.sanitizer import TRUNCATION_MARKER

from .conftest import (
    GOOD_QUERIES,
    GOOD_SYNTHESIS,
    GOOD_VERDICT,
    ScriptedProvider,
    StubSearchClient,
    failing_responder,
    scripted,
    stage_of,
)


async def submit(controller, description="Employee dismissed without notice after 6 years."):
    return await controller.submit(
        "Wrongful termination", description, "Is dismissal without notice lawful?"
    )


def trace(logs):
    return [(e.agent_name, e.action) for e in logs]


async def test_always_failing_gateway_fails_case(build_controller, case_service):
    controller, provider = build_controller(failing_responder)
    case_id = await submit(controller)

    workflow = await controller.execute(case_id)

    assert workflow.success is False
    assert "upstream unavailable" in workflow.error
    case = await case_service.get_case(case_id)
    assert case.status == CaseStatus.FAILED
    assert await case_service.get_result(case_id) is None

    logs = await case_service.get_logs(case_id)
    assert trace(logs) == [
        (AgentName.LAWYER, AgentAction.INITIATED),
        (AgentName.WEB_RESEARCHER, AgentAction.STARTED),
        (AgentName.WEB_RESEARCHER, AgentAction.FAILED),
        (AgentName.ASSOCIATE, AgentAction.STARTED),
        (AgentName.ASSOCIATE, AgentAction.FAILED),
        (AgentName.LAWYER, AgentAction.STARTED),
        (AgentName.LAWYER, AgentAction.FAILED),
    ]
    assert all("upstream unavailable" in e.reasoning for e in logs if e.action == AgentAction.FAILED)
    assert trace(workflow.logs) == trace(logs)
    assert len(provider.calls) == 3


async def test_well_formed_verdict_completes_case(build_controller, case_service, sample_hits):
    search = StubSearchClient(hits=sample_hits)
    controller, provider = build_controller(
        scripted(researcher=GOOD_QUERIES, associate=GOOD_SYNTHESIS, lawyer=GOOD_VERDICT),
        search_client=search,
    )
    case_id = await submit(controller)

    workflow = await controller.execute(case_id)

    assert workflow.success is True
    case = await case_service.get_case(case_id)
    assert case.status == CaseStatus.COMPLETED

    result = await case_service.get_result(case_id)
    assert result is not None
    assert result.recommendation == "File a claim for reinstatement."
    assert result.summary == "Employee dismissed without notice."
    assert json.loads(result.findings)["riskAssessment"] == "Low - statute is clear"
    assert json.loads(result.precedents) == ["Smith v Jones (2001)"]
    assert json.loads(result.statutes) == ["Industrial Disputes Act s.25F"]

    logs = await case_service.get_logs(case_id)
    assert len(logs) <= 9
    timestamps = [e.timestamp for e in logs]
    assert timestamps == sorted(timestamps)
    assert [e.action for e in logs].count(AgentAction.COMPLETED) == 3

    # only the first two formulated queries are executed
    assert search.queries == ["wrongful dismissal notice period", "unfair termination precedent"]
    # every stage asks for JSON output
    assert all(c["response_format"] == {"type": "json_object"} for c in provider.calls)


async def test_stage_outputs_flow_downstream(build_controller, sample_hits):
    controller, provider = build_controller(
        scripted(researcher=GOOD_QUERIES, associate=GOOD_SYNTHESIS, lawyer=GOOD_VERDICT),
        search_client=StubSearchClient(hits=sample_hits),
    )
    case_id = await submit(controller)
    workflow = await controller.execute(case_id)

    by_stage = {stage_of(c["messages"]): c["messages"] for c in provider.calls}
    associate_input = by_stage["associate"][-1]["content"]
    assert "Source [1]: Termination without notice held illegal" in associate_input
    assert "CASE FACTS (Important):\nEmployee dismissed" in associate_input

    lawyer_input = by_stage["lawyer"][-1]["content"]
    assert lawyer_input.startswith("CASE FACTS: Employee dismissed")
    assert '"precedents": ["Smith v Jones (2001)"]' in lawyer_input
    assert "```" not in workflow.synthesis
    assert workflow.result.startswith("{") and workflow.result.endswith("}")


async def test_unparseable_verdict_stores_fallback(build_controller, case_service):
    controller, _ = build_controller(
        scripted(researcher=GOOD_QUERIES, associate=GOOD_SYNTHESIS, lawyer="I cannot produce JSON today.")
    )
    case_id = await submit(controller)

    workflow = await controller.execute(case_id)

    assert workflow.success is True
    case = await case_service.get_case(case_id)
    assert case.status == CaseStatus.COMPLETED
    result = await case_service.get_result(case_id)
    findings = json.loads(result.findings)
    assert result.summary == "Automated parsing failed. See detailed analysis below."
    assert result.recommendation == "Please review raw findings."
    assert findings["analysis"] == "I cannot produce JSON today."
    assert findings["riskAssessment"] == "Unknown"
    assert findings["citations"] == []


STRUCTURED_VERDICT = json.dumps({
    "summary": "Dismissal lacked statutory notice.",
    "analysis": "Section 25F requires one month's notice or wages in lieu.",
    "recommendation": "File a claim for reinstatement.",
    "riskAssessment": {"level": "High", "reasons": ["no notice", "six years of service"]},
    "citations": [{"case": "Smith v Jones", "year": 2001}],
})


async def test_structured_verdict_fields_are_kept(build_controller, case_service):
    controller, _ = build_controller(
        scripted(researcher=GOOD_QUERIES, associate=GOOD_SYNTHESIS, lawyer=STRUCTURED_VERDICT)
    )
    case_id = await submit(controller)

    workflow = await controller.execute(case_id)

    assert workflow.success is True
    assert (await case_service.get_case(case_id)).status == CaseStatus.COMPLETED
    result = await case_service.get_result(case_id)
    assert result.summary == "Dismissal lacked statutory notice."
    assert result.recommendation == "File a claim for reinstatement."
    findings = json.loads(result.findings)
    assert findings["riskAssessment"]["level"] == "High"
    assert findings["citations"] == [{"case": "Smith v Jones", "year": 2001}]


def test_parse_verdict_wraps_single_citation():
    verdict = parse_verdict('{"summary": "ok", "citations": "Smith v Jones (2001)"}')
    assert verdict.summary == "ok"
    assert verdict.citations == ["Smith v Jones (2001)"]
    assert parse_verdict('{"citations": null}').citations == []


def test_as_text_serializes_structured_values():
    assert as_text("plain") == "plain"
    assert as_text(None) is None
    assert as_text("") is None
    assert json.loads(as_text({"level": "High"})) == {"level": "High"}
    assert as_text(["a", "b"]) == '["a", "b"]'


async def test_associate_failure_is_not_fatal(build_controller, case_service):
    controller, provider = build_controller(
        scripted(
            researcher=GOOD_QUERIES,
            associate=LLMGatewayError("gemini", "context too long", status_code=400),
            lawyer=GOOD_VERDICT,
        )
    )
    case_id = await submit(controller)

    workflow = await controller.execute(case_id)

    assert workflow.success is True
    assert json.loads(workflow.synthesis)["arguments"] == ["Analysis failed"]
    lawyer_call = next(c for c in provider.calls if stage_of(c["messages"]) == "lawyer")
    assert "Analysis failed" in lawyer_call["messages"][-1]["content"]

    result = await case_service.get_result(case_id)
    assert result.precedents is None
    assert result.statutes is None


async def test_reexecution_appends_new_result(build_controller, case_service):
    controller, _ = build_controller(scripted(lawyer=GOOD_VERDICT))
    case_id = await submit(controller)

    await controller.execute(case_id)
    first = await case_service.get_result(case_id)
    await controller.execute(case_id)
    latest = await case_service.get_result(case_id)

    assert latest.id != first.id
    assert len(case_service.results[case_id]) == 2
    assert (await case_service.get_case(case_id)).status == CaseStatus.COMPLETED


async def test_missing_case_is_rejected(build_controller):
    controller, _ = build_controller(scripted())
    with pytest.raises(CaseNotFoundError):
        await controller.execute(999)


class BlockingOrchestrator:
    """Orchestrator that waits until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def execute_workflow(self, case_id, query, description=None):
        self.started.set()
        await self.release.wait()
        return WorkflowResult(success=True, result=GOOD_VERDICT)


async def test_concurrent_execution_is_rejected(case_service):
    orchestrator = BlockingOrchestrator()
    controller = CaseLifecycleController(case_service, orchestrator)
    case_id = await submit(controller)
    other_id = await submit(controller)

    running = asyncio.create_task(controller.execute(case_id))
    await orchestrator.started.wait()

    assert controller.is_processing(case_id)
    assert (await case_service.get_case(case_id)).status == CaseStatus.PROCESSING
    with pytest.raises(CaseAlreadyProcessingError):
        await controller.execute(case_id)
    assert not controller.is_processing(other_id)

    orchestrator.release.set()
    workflow = await running
    assert workflow.success is True
    assert (await case_service.get_case(case_id)).status == CaseStatus.COMPLETED


async def test_finished_runs_release_their_lock(build_controller):
    controller, _ = build_controller(scripted(lawyer=GOOD_VERDICT))
    case_ids = [await submit(controller) for _ in range(3)]

    for case_id in case_ids:
        await controller.execute(case_id)

    assert controller._locks == {}
    # the case can still be run again afterwards
    workflow = await controller.execute(case_ids[0])
    assert workflow.success is True
    assert controller._locks == {}


async def test_rejected_run_keeps_lock_of_running_one(case_service):
    orchestrator = BlockingOrchestrator()
    controller = CaseLifecycleController(case_service, orchestrator)
    case_id = await submit(controller)

    running = asyncio.create_task(controller.execute(case_id))
    await orchestrator.started.wait()
    with pytest.raises(CaseAlreadyProcessingError):
        await controller.execute(case_id)

    assert controller.is_processing(case_id)
    orchestrator.release.set()
    await running
    assert case_id not in controller._locks


class ExplodingOrchestrator:
    async def execute_workflow(self, case_id, query, description=None):
        raise RuntimeError("store unavailable")


async def test_unexpected_error_marks_case_failed(case_service):
    controller = CaseLifecycleController(case_service, ExplodingOrchestrator())
    case_id = await submit(controller)

    with pytest.raises(RuntimeError, match="store unavailable"):
        await controller.execute(case_id)
    assert (await case_service.get_case(case_id)).status == CaseStatus.FAILED
    assert not controller.is_processing(case_id)
    assert case_id not in controller._locks


def test_non_fatal_agent_requires_fallback():
    with pytest.raises(TypeError, match="must define fallback"):
        class SilentAgent(BaseAgent):
            agent_name = AgentName.ASSOCIATE

            def get_system_prompt(self):
                return "prompt"

            async def process(self, context, upstream):
                return "{}"


def test_fatal_agent_needs_no_fallback():
    class StrictAgent(BaseAgent):
        agent_name = AgentName.LAWYER
        fatal = True

        def get_system_prompt(self):
            return "prompt"

        async def process(self, context, upstream):
            return "{}"

    assert StrictAgent.fallback is BaseAgent.fallback


# Researcher stage

def make_researcher(responder, case_service, test_settings, search_client=None):
    gateway = LLMGateway(providers={"gemini": ScriptedProvider(responder)})
    return WebResearcherAgent(gateway, case_service, search_client, test_settings)


async def test_researcher_without_search_key(case_service, test_settings):
    researcher = make_researcher(scripted(researcher=GOOD_QUERIES), case_service, test_settings)
    outcome = await researcher.run(ExecutionContext(case_id=1, query="q"))

    assert outcome.output == SEARCH_DISABLED
    assert outcome.logs[-1].reasoning == "Found no results"


async def test_researcher_falls_back_to_original_query(case_service, test_settings, sample_hits):
    search = StubSearchClient(hits=sample_hits)
    researcher = make_researcher(scripted(researcher="no json at all"), case_service, test_settings, search)

    outcome = await researcher.run(ExecutionContext(case_id=1, query="notice period law"))

    assert search.queries == ["notice period law"]
    assert outcome.output.startswith("Source [1]: Termination without notice held illegal\nURL: https://example.org/judgments/1")
    assert outcome.logs[-1].reasoning == "Found results"


def test_parse_queries_limits_and_filters(case_service, test_settings):
    researcher = make_researcher(scripted(), case_service, test_settings)
    raw = '{"queries": ["a", "", "b", "c", "d"]}'
    assert researcher.parse_queries(raw, "orig") == ["a", "b", "c"]
    assert researcher.parse_queries('{"queries": []}', "orig") == ["orig"]
    assert researcher.parse_queries('{"queries": "a"}', "orig") == ["orig"]


async def test_researcher_skips_failing_queries(case_service, test_settings, sample_hits):
    search = StubSearchClient(hits=sample_hits, failing=["wrongful dismissal notice period"])
    researcher = make_researcher(scripted(researcher=GOOD_QUERIES), case_service, test_settings, search)

    outcome = await researcher.run(ExecutionContext(case_id=1, query="q"))

    assert len(search.queries) == 2
    assert outcome.output.count("Source [") == 2
    assert outcome.failed is False


async def test_researcher_reports_no_results(case_service, test_settings):
    search = StubSearchClient(hits=[], failing=["x"])
    researcher = make_researcher(scripted(researcher='{"queries": ["x", "y"]}'), case_service, test_settings, search)

    outcome = await researcher.run(ExecutionContext(case_id=1, query="q"))

    assert outcome.output == NO_RESULTS


async def test_researcher_gateway_failure_uses_fallback(case_service, test_settings):
    researcher = make_researcher(failing_responder, case_service, test_settings, StubSearchClient())
    outcome = await researcher.run(ExecutionContext(case_id=1, query="q"))

    assert outcome.failed is True
    assert outcome.output == SEARCH_FAILED
    assert [e.action for e in outcome.logs] == [AgentAction.STARTED, AgentAction.FAILED]


async def test_cancellation_is_not_swallowed(case_service, test_settings):
    def cancel(messages):
        raise asyncio.CancelledError()

    researcher = make_researcher(cancel, case_service, test_settings, StubSearchClient())
    with pytest.raises(asyncio.CancelledError):
        await researcher.run(ExecutionContext(case_id=1, query="q"))


async def test_long_case_facts_are_clamped(case_service, test_settings):
    provider = ScriptedProvider(scripted(associate=GOOD_SYNTHESIS))
    associate = AssociateAgent(LLMGateway(providers={"gemini": provider}), case_service, test_settings)

    await associate.run(ExecutionContext(case_id=1, query="q", description="x" * 25000), "results")

    sent = provider.calls[0]["messages"][-1]["content"]
    assert len(sent) <= 20000
    assert sent.endswith(TRUNCATION_MARKER)


async def test_orchestrator_logs_initiated_with_query(case_service, test_settings):
    gateway = LLMGateway(providers={"gemini": ScriptedProvider(scripted(lawyer=GOOD_VERDICT))})
    orchestrator = LegalResearchOrchestrator(gateway, case_service, settings=test_settings)

    workflow = await orchestrator.execute_workflow(7, "Can the landlord keep the deposit?")

    first = workflow.logs[0]
    assert (first.agent_name, first.action) == (AgentName.LAWYER, AgentAction.INITIATED)
    assert first.input == "Can the landlord keep the deposit?"
    assert workflow.logs[-1].reasoning == "Verdict delivered"
