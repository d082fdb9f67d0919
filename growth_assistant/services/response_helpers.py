"""Reply texts shared by the dispatcher, onboarding and the flow-state inferencer.

Several of these phrases are matched by ``flow_state`` when an assistant
turn carries no structured marker; change them together.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..models import PageSummary

FATAL_FALLBACK_REPLY = (
    "I seem to be having trouble connecting to my systems right now. "
    "Please try again in a few moments."
)
DEFAULT_CLARIFICATION_QUESTION = (
    "I'm not sure what you'd like me to help with. Could you clarify what you need?"
)
CLASSIFIER_FAILURE_QUESTION = "I'm having trouble understanding. Could you please rephrase that?"
UNKNOWN_INTENT_REPLY = (
    "I'm not sure how to help with that. Could you tell me more about what you'd like to accomplish?"
)

# Onboarding
ONBOARDING_ASK_WEBSITE = (
    "Hi! I'm your business growth assistant. To get started quickly, do you have an existing "
    "business website I can learn from?"
)
ONBOARDING_MANUAL_SETUP = "Okay, no problem. Let's set things up manually. What's the name of your business?"
ONBOARDING_SCRAPE_FAILED = (
    "I had trouble reading your website. Let's set things up manually instead. "
    "What's the name of your business?"
)
ONBOARDING_PROFILE_CREATED = (
    'Great! I found your business "{business_name}" from your website. I\'ve set up your profile '
    "with the information I could gather. Is there anything you'd like to add or correct?"
)

# Page creation
ASK_PAGE_TITLE = "What should I call the new page?"
FAQ_DETAILS_QUESTION = (
    "Great! To make this FAQ page as helpful as possible, what are some common questions your "
    "customers ask? (You can list them or I can suggest some based on your business.)"
)
BLOG_DETAILS_QUESTION = (
    "Okay, I'll write a blog post{keyword_text}. Any specific points you want me to be sure to "
    "include? (Or I can create a comprehensive post based on your business profile.)"
)
TESTIMONIAL_DETAILS_QUESTION = (
    "Perfect! I'll create a testimonials section. Do you have specific reviews or testimonials "
    "you'd like me to include, or should I set up a section where you can add them later?"
)
PAGE_DETAILS_QUESTION = (
    "Great! To make this page as effective as possible, any specific topics or information "
    "you'd like me to include?"
)
PAGE_CREATED = "Done! I created the '{title}' page in your draft website.\n{diff}"
SEO_PAGE_CREATED = (
    "Done! I created the '{title}' page with SEO-optimized content and Schema.org markup "
    "in your draft website.\n{diff}"
)

# Rename / delete
ASK_RENAME_DETAILS = "Tell me which page to rename and the new title."
PAGE_RENAMED = "Okay, I renamed the page.\n{diff}"
ASK_DELETE_TARGET = "Which page should I delete? Please tell me the page name or URL slug."
CONFIRM_DELETE = (
    'Please confirm: Do you want me to delete the "{title}" page (/{slug})? '
    "Say 'Yes, delete it' to proceed."
)
PAGE_DELETED = (
    "I've deleted the page from your draft website.\n{diff}\n"
    "If this was a mistake, ask me to re-create it."
)
PAGE_NOT_FOUND = "I couldn't find that page. Your current pages are: {page_list}"
NO_PAGES_YET = (
    "I don't see any pages on your website yet. Would you like me to create a page first?"
)

# Embeds
ASK_EMBED_PAGE = "Great! Which page should I add the embed to? Your current pages are: {page_list}"
ASK_EMBED_HTML = (
    'Perfect, I\'ll add the embed to "{title}". Please paste the full HTML embed code provided '
    "by your service (e.g., Calendly, Google Maps)."
)
EMBED_ADDED = (
    'Perfect! I\'ve added the embed to your "{title}" page. You can preview it in your Website '
    "Dashboard. The embed is now securely sandboxed and will display when you publish your website."
)

# Other intents
LEGAL_PAGES_ADDED = (
    "Okay! I've added a 'Privacy Policy' and 'Terms of Service' page to your website and linked "
    "them in your footer. You can review them in your Website Dashboard.\n{diff}"
)
ASK_PROFILE_FIELDS = "What would you like me to update in your business profile?"
PROFILE_UPDATED = "Perfect! I've updated your {fields}. Is there anything else you'd like to change?"
PROFILE_INVALID = "That doesn't look quite right: {reason}. Could you double-check it?"
CORRECTION_APPLIED = "Thanks for catching that! I've updated your {fields}."
CORRECTION_ASK_VALUE = "My apologies for the mistake! Thanks for catching that. What should I change it to?"
SUGGESTIONS_FALLBACK = (
    "I'd be happy to provide suggestions! What area would you like help with - your website, "
    "content, social media, or something else?"
)
SUGGESTIONS_HEADER = "Here are a few ideas for your business:"
ANALYTICS_UNAVAILABLE = "I couldn't find analytics for your website yet: {reason}."
ANALYTICS_FAILED = (
    "I'm sorry, I had trouble fetching your analytics data. Please try again in a few moments."
)
CREATE_WEBSITE_ACK = (
    "I'm working on creating your website based on your business profile. This will include "
    "your services, contact information, and professional design. I'll let you know when it's ready!"
)
WRITE_BLOG_ACK = (
    "I'm generating blog content ideas and drafts tailored to your business. This will help with "
    "your SEO and customer engagement. I'll have some suggestions for you shortly!"
)
ASK_CONTENT_PAGE = "I'm updating your page content. Which page would you like me to modify?"
CONTENT_UPDATE_ACK = "I'm updating the content on your \"{title}\" page. I'll let you know when it's ready!"

QUOTA_REPLY = "I can't {action} yet: {reason}"
NOT_ALLOWED_REPLY = "I can't {action}: {reason}"
TRANSIENT_FAILURE_REPLY = "Sorry, I couldn't {action} right now. Please try again in a few moments."

# Text fragments recognised in assistant turns that carry no flow marker.
EMBED_PAGE_HINTS = ("which page", "embed")
EMBED_HTML_HINT = "paste the full html embed code"
PAGE_DETAILS_HINTS = {
    "common questions": "faq",
    "specific points": "blog",
    "testimonials": "testimonial",
    "specific topics": "page",
}
DELETE_CONFIRM_HINTS = ("please confirm", "delete")

_FIELD_LABELS = {
    "business_name": "business name",
    "industry": "industry",
    "location": "location",
    "contact_info": "contact info",
    "services": "services",
    "hours": "business hours",
    "brand_voice": "brand voice",
    "target_audience": "target audience",
    "custom_attributes": "custom details",
}


def format_page_list(pages: Iterable[PageSummary]) -> str:
    return ", ".join(f'"{page.title}" (/{page.slug})' for page in pages)


def format_field_list(fields: Iterable[str]) -> str:
    labels = [_FIELD_LABELS.get(field, field.replace("_", " ")) for field in fields]
    if len(labels) <= 1:
        return "".join(labels)
    return ", ".join(labels[:-1]) + " and " + labels[-1]


def blog_details_question(keyword: Optional[str]) -> str:
    keyword_text = f" about '{keyword}'" if keyword else ""
    return BLOG_DETAILS_QUESTION.format(keyword_text=keyword_text)


def page_details_question(page_type: Optional[str], keyword: Optional[str]) -> str:
    """Type-specific follow-up asked before creating a page from an SEO suggestion."""

    if page_type == "faq":
        return FAQ_DETAILS_QUESTION
    if page_type == "blog":
        return blog_details_question(keyword)
    if page_type == "testimonial":
        return TESTIMONIAL_DETAILS_QUESTION
    return PAGE_DETAILS_QUESTION
