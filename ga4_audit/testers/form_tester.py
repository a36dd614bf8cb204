"""
Form phase: exercise a form definition through four scenarios.

1. Individual fields: fill and blur each field, one action per field.
2. Valid submission: fill every field with its valid value and submit.
3. Empty submission: submit the untouched form.
4. Invalid submission: fill fields that declare an invalid value and submit.

The page is reloaded before each submission scenario.  Each form
action reads its hits from a scoped capture session opened just before
it, so stray hits from earlier phases are never considered.  A form
or submit button that cannot be found aborts the whole phase with
:class:`FormPhaseError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ga4_audit.attribution import action_log as action_log_mod
from ga4_audit.attribution import engine as engine_mod
from ga4_audit.browser import steps
from ga4_audit.config import TrackerConfig
from ga4_audit.models import actions, browser
from ga4_audit.testers import base
from ga4_audit.utils import errors, logger

log = logger.create_logger("Form-Tester")


class FormTester(base.PhaseTester):
    kind = "form"

    def __init__(
        self,
        session: Any,
        config: TrackerConfig,
        action_log: action_log_mod.ActionLog,
        engine: engine_mod.AttributionEngine,
        definition: browser.FormDefinition,
        after_refresh_steps: Sequence[Any] = (),
    ) -> None:
        super().__init__(session, config, action_log, engine, after_refresh_steps)
        self._definition = definition

    # ==========================================================================
    # Field helpers
    # ==========================================================================

    async def _fill(self, name: str, field: browser.FormField, value: Any) -> None:
        """Put *value* into *field* according to its type."""
        session = self._session
        match field.type:
            case "text" | "email" | "tel":
                await session.fill(field.selector, "" if value is None else str(value))
            case "radio":
                if value:
                    await session.check(f'{field.selector}[value="{value}"]')
            case "checkbox":
                if isinstance(value, list):
                    for option in value:
                        await session.check(f'{field.selector}[value="{option}"]')
                elif value:
                    await session.check(field.selector)
            case "select":
                await session.select_option(field.selector, "" if value is None else str(value))
        log.debug(f'Filled "{name}"', {"type": field.type})

    async def _is_visible(self, field: browser.FormField) -> bool:
        """Evaluate a conditional field's ``dependsOn`` / ``showWhen`` rule."""
        condition = field.conditional
        if condition is None:
            return True
        dependency = self._definition.fields.get(condition.depends_on)
        if dependency is None:
            return False
        try:
            if dependency.type == "radio":
                return await self._session.checked_value(dependency.selector) == condition.show_when
            if dependency.type == "checkbox":
                return await self._session.has_selector(
                    f'{dependency.selector}[value="{condition.show_when}"]:checked'
                )
        except Exception as exc:
            log.warn("Could not evaluate conditional field", {"error": errors.get_error_message(exc)})
        return False

    async def _ensure_form(self) -> None:
        if not await self._session.has_selector(self._definition.form_selector):
            raise errors.FormPhaseError(f"Form not found: {self._definition.form_selector}")

    async def _refresh(self, scenario: str) -> None:
        log.info(f"Refreshing page for {scenario}")
        await self._session.reload()
        await steps.run_steps(self._session, self._after_refresh_steps)
        await self._ensure_form()

    # ==========================================================================
    # Scenarios
    # ==========================================================================

    async def _test_field(self, name: str, field: browser.FormField) -> actions.Action:
        session = self._session
        handle = session.begin_capture_session()
        action = self._action_log.begin(
            "form",
            session.now_ms(),
            form_scenario="individual_field",
            form_field=name,
            element=actions.ElementDescriptor(tag_name=field.type, selector=field.selector),
        )
        try:
            await self._fill(name, field, field.valid)
            await session.blur(field.selector)
            await session.wait_for_timeout(self._config.form.blur_delay_ms)
            action.success = True
        except Exception as exc:
            action.failure_reason = errors.get_error_message(exc)
            log.warn(f'Error filling field "{name}"', {"error": action.failure_reason})

        try:
            if action.success:
                await self._wait_window()
        finally:
            captured = session.end_capture_session(handle)
        return self._finish(action, captured)

    async def test_individual_fields(self) -> list[actions.Action]:
        fields = self._definition.fields
        if not fields:
            log.info("Individual field testing skipped: no fields configured")
            return []

        recorded = []
        for name, field in fields.items():
            if not await self._is_visible(field):
                log.info(f'Skipping conditional field "{name}" (not visible)')
                continue
            recorded.append(await self._test_field(name, field))
            await self._session.wait_for_timeout(self._config.form.field_fill_delay_ms)
        return recorded

    async def _submit(self, scenario: actions.FormScenario) -> actions.Action:
        """Click the submit button as one form action."""
        session = self._session
        selector = self._definition.submit_button_selector
        if not await session.has_selector(selector):
            raise errors.FormPhaseError(f"Submit button not found: {selector}")

        handle = session.begin_capture_session()
        action = self._action_log.begin(
            "form",
            session.now_ms(),
            form_scenario=scenario,
            element=actions.ElementDescriptor(tag_name="button", selector=selector),
        )
        try:
            await session.click_selector(selector, timeout=self._config.form.timeout_ms)
            action.success = True
        except Exception as exc:
            action.failure_reason = errors.get_error_message(exc)
            log.warn(f"Submit failed for {scenario}", {"error": action.failure_reason})

        try:
            if action.success:
                await self._wait_window()
        finally:
            captured = session.end_capture_session(handle)
        action = self._finish(action, captured)
        log.info(f"{scenario}: captured {len(action.matched_events)} event(s)")
        return action

    async def _fill_all(self, attr: str) -> int:
        filled = 0
        for name, field in self._definition.fields.items():
            value = getattr(field, attr)
            if value is None or not await self._is_visible(field):
                continue
            try:
                await self._fill(name, field, value)
                filled += 1
            except Exception as exc:
                log.warn(f'Error fast-filling field "{name}"', {"error": errors.get_error_message(exc)})
        return filled

    async def test_valid_submission(self) -> actions.Action:
        filled = await self._fill_all("valid")
        log.info(f"Filled {filled} field(s) with valid data")
        await self._session.wait_for_timeout(self._config.form.submit_delay_ms)
        return await self._submit("valid_submission")

    async def test_empty_submission(self) -> actions.Action:
        return await self._submit("empty_submission")

    async def test_invalid_submission(self) -> actions.Action | None:
        if not any(f.invalid is not None for f in self._definition.fields.values()):
            log.info("Invalid submission skipped: no invalid test values configured")
            return None
        filled = await self._fill_all("invalid")
        log.info(f"Filled {filled} field(s) with invalid data")
        await self._session.wait_for_timeout(self._config.form.submit_delay_ms)
        return await self._submit("invalid_submission")

    async def run(self) -> list[actions.Action]:
        """Run the enabled scenarios in order.

        Raises:
            FormPhaseError: If the form or its submit button is missing.
        """
        settings = self._config.form
        log.info("Starting form testing", {"form": self._definition.name or self._definition.form_selector})
        await self._ensure_form()

        recorded: list[actions.Action] = []
        if settings.individual_fields:
            recorded.extend(await self.test_individual_fields())
        if settings.valid_submission:
            await self._refresh("valid submission")
            recorded.append(await self.test_valid_submission())
        if settings.empty_submission:
            await self._refresh("empty submission")
            recorded.append(await self.test_empty_submission())
        if settings.invalid_submission:
            await self._refresh("invalid submission")
            if (action := await self.test_invalid_submission()) is not None:
                recorded.append(action)

        log.success("Form testing complete", {"actions": len(recorded)})
        return recorded
