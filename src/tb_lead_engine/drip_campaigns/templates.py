"""Email and SMS templates for sequence steps.

Every TemplateType has exactly one SequenceTemplate subclass. The
TemplateLibrary refuses to build if a type is left without one.
"""

import html
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Type, Union


class TemplateType(Enum):
    """Semantic template kinds used by sequence steps."""
    WELCOME = "welcome"
    EDUCATION = "education"
    TESTIMONIALS = "testimonials"
    CTA = "cta"
    FOLLOW_UP = "follow_up"
    PROPOSAL_CHECK = "proposal_check"
    FAQ = "faq"
    URGENCY = "urgency"
    FINAL_CALL = "final_call"
    REENGAGEMENT = "reengagement"
    PROMOTION = "promotion"
    CASE_STUDY = "case_study"
    THANK_YOU = "thank_you"
    ONBOARDING = "onboarding"
    CHECKLIST = "checklist"
    FEEDBACK = "feedback"
    STAY_CONNECTED = "stay_connected"


@dataclass(frozen=True)
class RenderedTemplate:
    """A template filled in for one contact."""
    subject: str
    html: str
    text: str


class _SafeFields(dict):
    """Unknown merge fields render as empty strings."""

    def __missing__(self, key):
        return ""


class SequenceTemplate:
    """Base class for one template type."""

    template_type: TemplateType
    subject: str = ""
    body: str = ""

    def render(self, fields: Dict[str, str], company_name: str = "T&B Dock") -> RenderedTemplate:
        merged = _SafeFields(fields)
        merged["company_name"] = company_name
        if not merged.get("first_name"):
            merged["first_name"] = "there"

        subject = self.subject.format_map(merged)
        text = self.body.format_map(merged).strip()
        paragraphs = "".join(
            f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>"
            for p in text.split("\n\n")
        )
        return RenderedTemplate(subject=subject, html=f"<html><body>{paragraphs}</body></html>", text=text)


class WelcomeTemplate(SequenceTemplate):
    template_type = TemplateType.WELCOME
    subject = "Welcome to {company_name}, {first_name}!"
    body = """Hi {first_name},

Thanks for reaching out to {company_name}. We build docks that last, and we'd love to help with your waterfront project.

Reply to this email or give us a call whenever you're ready to talk."""


class EducationTemplate(SequenceTemplate):
    template_type = TemplateType.EDUCATION
    subject = "Why steel truss docks last longer"
    body = """Hi {first_name},

Steel truss docks hold up to ice, wind and heavy use better than most alternatives. Here is a quick look at how we build them and why it matters for your shoreline."""


class CustomerStoriesTemplate(SequenceTemplate):
    template_type = TemplateType.TESTIMONIALS
    subject = "See what our customers are saying"
    body = """Hi {first_name},

Don't just take our word for it. Here is what homeowners around the lake say about working with {company_name}."""


class CallToActionTemplate(SequenceTemplate):
    template_type = TemplateType.CTA
    subject = "Ready to talk about your project, {first_name}?"
    body = """Hi {first_name},

If you're ready to move forward, reply with a good time for a site visit and we'll put together a free estimate."""


class FollowUpTemplate(SequenceTemplate):
    template_type = TemplateType.FOLLOW_UP
    subject = "Following up on your dock project"
    body = """Hi {first_name},

Just checking in. Do you have any questions we can answer about your project?"""


class ProposalCheckTemplate(SequenceTemplate):
    template_type = TemplateType.PROPOSAL_CHECK
    subject = "Did you receive your proposal?"
    body = """Hi {first_name},

We sent over your project proposal. Let us know it arrived and whether anything needs clarifying."""


class FaqTemplate(SequenceTemplate):
    template_type = TemplateType.FAQ
    subject = "Questions about your dock project?"
    body = """Hi {first_name},

Here are answers to the questions we hear most often about permits, timelines and materials."""


class UrgencyTemplate(SequenceTemplate):
    template_type = TemplateType.URGENCY
    subject = "Booking season is filling up"
    body = """Hi {first_name},

Our construction calendar fills quickly. Confirm your proposal soon to hold your spot this season."""


class FinalCallTemplate(SequenceTemplate):
    template_type = TemplateType.FINAL_CALL
    subject = "Last chance: your custom proposal"
    body = """Hi {first_name},

Your proposal pricing is held for a limited time. Reply before it expires and we'll get you scheduled."""


class ReengagementTemplate(SequenceTemplate):
    template_type = TemplateType.REENGAGEMENT
    subject = "Still interested in your waterfront project?"
    body = """Hi {first_name},

It's been a while since we talked. If your project is still on your mind, we're happy to pick up where we left off."""


class PromotionTemplate(SequenceTemplate):
    template_type = TemplateType.PROMOTION
    subject = "A special offer on your project"
    body = """Hi {first_name},

For a limited time we're offering a discount on new projects booked this month. Reply to claim it."""


class CaseStudyTemplate(SequenceTemplate):
    template_type = TemplateType.CASE_STUDY
    subject = "How we transformed a waterfront"
    body = """Hi {first_name},

Here is a recent project from start to finish, including the challenges we solved along the way."""


class ThankYouTemplate(SequenceTemplate):
    template_type = TemplateType.THANK_YOU
    subject = "Thank you for choosing {company_name}!"
    body = """Hi {first_name},

Welcome aboard. We're excited to get started and will be in touch shortly with next steps."""


class OnboardingTemplate(SequenceTemplate):
    template_type = TemplateType.ONBOARDING
    subject = "What to expect during construction"
    body = """Hi {first_name},

Here is how the next few weeks will go, from permits through final walkthrough."""


class ChecklistTemplate(SequenceTemplate):
    template_type = TemplateType.CHECKLIST
    subject = "Pre-construction checklist for your property"
    body = """Hi {first_name},

A few things to take care of before our crew arrives: clear shoreline access, mark utilities and secure any boats."""


class FeedbackTemplate(SequenceTemplate):
    template_type = TemplateType.FEEDBACK
    subject = "We'd love your feedback"
    body = """Hi {first_name},

We're sorry we didn't get to work together this time. Would you share what made the difference in your decision?"""


class StayConnectedTemplate(SequenceTemplate):
    template_type = TemplateType.STAY_CONNECTED
    subject = "Keep us in mind for future projects"
    body = """Hi {first_name},

Whenever you're ready for your next waterfront project, {company_name} is here to help."""


DEFAULT_TEMPLATES = (
    WelcomeTemplate, EducationTemplate, CustomerStoriesTemplate, CallToActionTemplate,
    FollowUpTemplate, ProposalCheckTemplate, FaqTemplate, UrgencyTemplate,
    FinalCallTemplate, ReengagementTemplate, PromotionTemplate, CaseStudyTemplate,
    ThankYouTemplate, OnboardingTemplate, ChecklistTemplate, FeedbackTemplate,
    StayConnectedTemplate,
)


class TemplateLibrary:
    """Render any TemplateType for a contact."""

    def __init__(
        self,
        templates: Optional[Iterable[Type[SequenceTemplate]]] = None,
        company_name: str = "T&B Dock",
    ):
        self.company_name = company_name
        self._templates: Dict[TemplateType, SequenceTemplate] = {}

        for template_cls in templates or DEFAULT_TEMPLATES:
            template = template_cls()
            if template.template_type in self._templates:
                raise ValueError(f"Duplicate template for {template.template_type.value}")
            self._templates[template.template_type] = template

        missing = [t.value for t in TemplateType if t not in self._templates]
        if missing:
            raise ValueError(f"No template implementation for: {', '.join(missing)}")

    def get(self, template_type: Union[TemplateType, str]) -> SequenceTemplate:
        return self._templates[TemplateType(template_type)]

    def render(self, template_type: Union[TemplateType, str], fields: Dict[str, str]) -> RenderedTemplate:
        """Render a template with contact merge fields."""
        return self.get(template_type).render(fields, company_name=self.company_name)
