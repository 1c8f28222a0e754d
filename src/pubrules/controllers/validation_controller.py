# src/pubrules/controllers/validation_controller.py
import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from extractor.builder import DocumentExtractor
from extractor.loader import DocumentLoader
from extractor.model import DocumentModel, DocumentSource
from linkcheck.services.http_request_service import HttpRequestService
from linkcheck.services.link_resolver_service import LinkResolver
from pubrules.core.errors import ExtractionError
from pubrules.core.loop_runner import run_on_main_loop
from pubrules.core.managers.config_manager import config_manager
from pubrules.core.rule import Rule
from pubrules.core.rule_registry import RuleRegistry, get_default_registry
from pubrules.core.run_state import RuleReporter, RunState, ValidationRun
from pubrules.core.sink import Sink
from pubrules.model import Profile, RunConfig, RunResult
from pubrules.profiles import get_profile

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[HttpRequestService], LinkResolver]
SourceLike = Union[DocumentSource, Dict[str, Any]]


class Validator:
    """
    Orchestrates validation runs.

    A run loads and extracts the document once, dispatches every rule of the
    profile concurrently against the shared DocumentModel, waits until each
    of them has settled (or the run timeout elapses) and then emits a single
    'end-all' on the run's sink.

    Coroutine rules run as tasks on the event loop, plain rules in the
    loop's default thread pool; an awaitable a plain rule returns is awaited
    on the loop before the rule counts as returned. A rule that raises is
    reported as an 'exception' event and counts as settled; its siblings
    are unaffected.
    """

    def __init__(
            self,
            registry: Optional[RuleRegistry] = None,
            extractor: Optional[DocumentExtractor] = None,
            loader: Optional[DocumentLoader] = None,
            resolver_factory: Optional[ResolverFactory] = None,
            run_timeout: Optional[float] = None,
    ):
        self.registry = registry if registry is not None else get_default_registry()
        self.extractor = extractor or DocumentExtractor()
        self.loader = loader
        self.resolver_factory = resolver_factory or (lambda http: LinkResolver(http_service=http))
        self.run_timeout = run_timeout if run_timeout is not None else float(
            config_manager.get_nested("validator.run_timeout", 120)
        )

    # --- Entry points ---

    async def validate(
            self,
            source: SourceLike,
            profile: Union[str, Profile],
            sink: Optional[Sink] = None,
            timeout: Optional[float] = None,
            overrides: Optional[Dict[str, Any]] = None,
    ) -> RunResult:
        """
        Validates one document against a profile.

        Args:
            source: Where the document comes from (file, url or content).
            profile: A Profile or the name of a bundled one ('WD', 'REC', ...).
            sink: Receives the run's events. A fresh one is created if omitted.
            timeout: Seconds the rules get before the run gives up on them.
            overrides: Configuration applied on top of the profile's.

        Raises:
            UnknownRuleError: if the profile names a rule that is not registered.
            SinkReuseError: if the sink already served another run.
        """
        source = self._as_source(source)
        if isinstance(profile, str):
            profile = get_profile(profile)
        rules = self._resolve_rules(profile)
        config = profile.config.merged(overrides)
        timeout = self.run_timeout if timeout is None else timeout

        run = ValidationRun(sink if sink is not None else Sink(), profile=profile.name)
        logger.info("Run %s: validating %s against %s (%d rules)", run.run_id, source.label, profile.name, len(rules))
        started = time.perf_counter()

        async with HttpRequestService({"session": config_manager.get_nested("session", {})}) as http:
            doc = await self._extract(run, source, http)
            if doc is None:
                return run.result

            run.transition(RunState.RUNNING)
            async with self.resolver_factory(http) as resolver:
                tasks = self._dispatch(run, rules, doc, config, resolver)
                await self._await_rules(run, tasks, timeout)
                result = run.terminate()
                await self._drain(tasks)

        logger.info(
            "Run %s finished in %.2fs: %d error(s), %d warning(s), %d exception(s)%s",
            run.run_id, time.perf_counter() - started, len(result.errors), len(result.warnings),
            len(result.exceptions), " [timed out]" if result.timed_out else "",
        )
        return result

    async def extract_metadata(self, source: SourceLike, sink: Optional[Sink] = None) -> RunResult:
        """Loads and extracts the document without running any rule."""
        source = self._as_source(source)
        run = ValidationRun(sink if sink is not None else Sink())
        async with HttpRequestService({"session": config_manager.get_nested("session", {})}) as http:
            doc = await self._extract(run, source, http)
        if doc is None:
            return run.result
        return run.terminate()

    def validate_sync(self, source: SourceLike, profile: Union[str, Profile], **kwargs) -> RunResult:
        return run_on_main_loop(self.validate(source, profile, **kwargs))

    def extract_metadata_sync(self, source: SourceLike, sink: Optional[Sink] = None) -> RunResult:
        return run_on_main_loop(self.extract_metadata(source, sink))

    # --- Phases ---

    @staticmethod
    def _as_source(source: SourceLike) -> DocumentSource:
        if isinstance(source, DocumentSource):
            return source
        return DocumentSource.model_validate(source)

    def _resolve_rules(self, profile: Profile) -> List[Rule]:
        rules: List[Rule] = []
        seen = set()
        for rule_id in profile.rules:
            if rule_id in seen:
                logger.warning("Profile %s lists rule '%s' more than once; running it once.", profile.name, rule_id)
                continue
            seen.add(rule_id)
            rules.append(self.registry.get(rule_id))
        return rules

    async def _extract(self, run: ValidationRun, source: DocumentSource, http: HttpRequestService) -> Optional[DocumentModel]:
        run.transition(RunState.EXTRACTING)
        loader = self.loader or DocumentLoader(http)
        try:
            loaded = await loader.load(source)
            doc = self.extractor.extract(loaded.content, loaded.url)
        except ExtractionError as e:
            logger.error("Run %s: %s", run.run_id, e)
            run.abort(str(e))
            return None
        run.meta = doc
        return doc

    def _dispatch(
            self,
            run: ValidationRun,
            rules: List[Rule],
            doc: DocumentModel,
            config: RunConfig,
            resolver: LinkResolver,
    ) -> List[asyncio.Task]:
        # Every rule is counted before the first one starts
        reporters = [(rule, run.reporter_for(rule)) for rule in rules]
        run.barrier.seal()
        return [
            asyncio.create_task(self._execute(rule, doc, config, resolver, reporter), name=f"rule:{rule.rule_id}")
            for rule, reporter in reporters
        ]

    @staticmethod
    async def _execute(
            rule: Rule,
            doc: DocumentModel,
            config: RunConfig,
            resolver: LinkResolver,
            reporter: RuleReporter,
    ) -> None:
        try:
            if rule.is_async:
                outcome = rule.run(doc, config, resolver, reporter)
            else:
                loop = asyncio.get_running_loop()
                outcome = await loop.run_in_executor(None, rule.run, doc, config, resolver, reporter)
            # A plain callable may still hand back a coroutine or future
            if inspect.isawaitable(outcome):
                await outcome
        except asyncio.CancelledError:
            logger.debug("Rule %s cancelled.", rule.rule_id)
            raise
        except Exception as e:
            logger.error("Rule %s failed: %s", rule.rule_id, e, exc_info=True)
            reporter.fail(e)
            return
        if reporter.deferred and not reporter.completed:
            logger.debug("Rule %s returned; waiting for its explicit completion.", rule.rule_id)
        reporter.finish()

    @staticmethod
    async def _await_rules(run: ValidationRun, tasks: List[asyncio.Task], timeout: Optional[float]) -> None:
        if timeout is not None and timeout <= 0:
            timeout = None
        if await run.barrier.wait(timeout):
            return
        if not run.timeout(timeout):
            logger.debug("Run %s: last rule settled as the timeout elapsed.", run.run_id)
            return
        for task in tasks:
            if not task.done():
                task.cancel()

    @staticmethod
    async def _drain(tasks: List[asyncio.Task]) -> None:
        """Waits for the rule tasks to unwind once the run has terminated."""
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=1.0)
        for task in pending:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
