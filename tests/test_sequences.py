"""Tests for the sequence catalog and templates."""

import logging

import pytest

from tb_lead_engine.drip_campaigns.sequences import (
    Sequence,
    SequenceStep,
    SequenceCatalog,
    SequenceTrigger,
    Channel,
)
from tb_lead_engine.drip_campaigns.templates import (
    TemplateType,
    TemplateLibrary,
    RenderedTemplate,
    DEFAULT_TEMPLATES,
    WelcomeTemplate,
)


class TestSequenceCatalog:
    """Tests for the built-in catalog."""

    def setup_method(self):
        self.catalog = SequenceCatalog()

    def test_default_sequences(self):
        ids = [s.id for s in self.catalog.all()]
        assert ids == [
            "new-lead-nurture",
            "proposal-follow-up",
            "cold-lead-reactivation",
            "post-sale-onboarding",
            "lost-deal-feedback",
        ]

    @pytest.mark.parametrize("sequence_id,delays", [
        ("new-lead-nurture", [0, 24, 72, 120, 168]),
        ("proposal-follow-up", [2, 48, 96, 168]),
        ("cold-lead-reactivation", [0, 72, 120]),
        ("post-sale-onboarding", [0, 24, 72]),
        ("lost-deal-feedback", [24, 168]),
    ])
    def test_step_delays(self, sequence_id, delays):
        sequence = self.catalog.get(sequence_id)
        assert [s.delay_hours for s in sequence.steps] == delays

    def test_steps_default_to_email(self):
        for sequence in self.catalog.all():
            assert all(step.channel == Channel.EMAIL for step in sequence.steps)

    def test_get_unknown(self):
        assert self.catalog.get("nope") is None

    def test_by_trigger(self):
        matches = self.catalog.by_trigger(SequenceTrigger.NEW_LEAD)
        assert [s.id for s in matches] == ["new-lead-nurture"]

    def test_by_trigger_string(self):
        assert [s.id for s in self.catalog.by_trigger("lost_deal")] == ["lost-deal-feedback"]

    def test_by_trigger_skips_inactive(self):
        assert self.catalog.set_active("new-lead-nurture", False)
        assert self.catalog.by_trigger(SequenceTrigger.NEW_LEAD) == []

    def test_set_active_unknown(self):
        assert not self.catalog.set_active("nope", False)

    def test_empty_steps_rejected(self):
        with pytest.raises(ValueError):
            SequenceCatalog([Sequence("empty", "Empty", SequenceTrigger.NEW_LEAD, steps=[])])

    def test_duplicate_id_rejected(self):
        step = SequenceStep("one", 0, TemplateType.WELCOME)
        with pytest.raises(ValueError):
            SequenceCatalog([
                Sequence("dup", "A", SequenceTrigger.NEW_LEAD, steps=[step]),
                Sequence("dup", "B", SequenceTrigger.COLD_LEAD, steps=[step]),
            ])

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            SequenceCatalog([
                Sequence("neg", "Neg", SequenceTrigger.NEW_LEAD,
                         steps=[SequenceStep("one", -1, TemplateType.WELCOME)]),
            ])

    def test_decreasing_delays_warned_not_rejected(self, caplog):
        sequence = Sequence("odd", "Odd", SequenceTrigger.NEW_LEAD, steps=[
            SequenceStep("late", 48, TemplateType.WELCOME),
            SequenceStep("early", 24, TemplateType.FOLLOW_UP),
        ])

        with caplog.at_level(logging.WARNING):
            catalog = SequenceCatalog([sequence])

        assert catalog.get("odd") is sequence
        assert "decreasing" in caplog.text


class TestTemplateLibrary:
    """Tests for template rendering."""

    def setup_method(self):
        self.library = TemplateLibrary()

    def test_every_type_has_a_template(self):
        for template_type in TemplateType:
            assert self.library.get(template_type).template_type == template_type

    def test_every_catalog_step_renders(self):
        fields = {"first_name": "Dana", "last_name": "Reyes", "email": "dana@example.com"}
        for sequence in SequenceCatalog().all():
            for step in sequence.steps:
                rendered = self.library.render(step.template_type, fields)
                assert rendered.subject
                assert rendered.text

    def test_render_substitutes_fields(self):
        rendered = self.library.render(TemplateType.WELCOME, {"first_name": "Dana"})

        assert isinstance(rendered, RenderedTemplate)
        assert rendered.subject == "Welcome to T&B Dock, Dana!"
        assert rendered.text.startswith("Hi Dana,")
        assert "<p>" in rendered.html

    def test_missing_first_name_renders_there(self):
        rendered = self.library.render("welcome", {})
        assert rendered.text.startswith("Hi there,")

    def test_html_is_escaped(self):
        rendered = self.library.render(TemplateType.WELCOME, {"first_name": "<b>Dana</b>"})
        assert "<b>Dana</b>" not in rendered.html
        assert "&lt;b&gt;Dana&lt;/b&gt;" in rendered.html

    def test_company_name(self):
        library = TemplateLibrary(company_name="Acme Docks")
        assert "Acme Docks" in library.render(TemplateType.WELCOME, {}).subject

    def test_missing_template_rejected(self):
        with pytest.raises(ValueError):
            TemplateLibrary(templates=[WelcomeTemplate])

    def test_duplicate_template_rejected(self):
        with pytest.raises(ValueError):
            TemplateLibrary(templates=list(DEFAULT_TEMPLATES) + [WelcomeTemplate])

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            self.library.get("carrier_pigeon")
