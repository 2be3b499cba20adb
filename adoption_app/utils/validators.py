"""
Input validation functions for the Pet Adoption Board application.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Optional

from .. import catalog
from ..config import MAX_TITLE_LENGTH, MAX_DESCRIPTION_LENGTH
from ..exceptions import ValidationError, ContentPolicyError
from ..models.listing import ListingForm, SEXES, STATUSES

# Selling words/symbols, matched case-insensitively. Word edges are ASCII only
# while the gap in "for sale" may be any Unicode whitespace.
SELLING_TERMS_RE = re.compile(
    r"(?<![A-Za-z0-9_])(price|money|euro|eur|dollar|usd|kn|kuna|hrk|sell|selling|for\s*sale)(?![A-Za-z0-9_])|[$€]",
    re.IGNORECASE,
)

# Order in which blocking errors are reported on submit
FIELD_ORDER = (
    "title",
    "description",
    "city",
    "contact",
    "age_years",
    "animal_type",
    "breed",
    "sex",
    "status",
)


def find_banned_terms(text: Optional[str]) -> list[str]:
    """
    Find selling-related terms in free text.

    Args:
        text: Text to scan

    Returns:
        list: Matched terms, lowercased and whitespace-collapsed, deduplicated
              in first-seen order
    """
    if not text:
        return []

    terms = []
    for match in SELLING_TERMS_RE.finditer(text):
        term = re.sub(r"\s+", " ", match.group(0).strip().lower())
        if term not in terms:
            terms.append(term)
    return terms


def text_length(text: str) -> int:
    """Length in UTF-16 code units, so characters outside the BMP count twice."""
    return len(text.encode("utf-16-le")) // 2


def parse_age(value: Optional[str]) -> Optional[float]:
    """
    Parse the age input.

    Args:
        value: Raw age text

    Returns:
        float: Age in years, or None when left empty

    Raises:
        ValidationError: If the age is not a non-negative number
    """
    if value is None:
        return None
    text = str(value).strip()
    if text == "":
        return None

    try:
        age = float(text)
    except ValueError:
        raise ValidationError("age_years", "Age must be a number")

    if not math.isfinite(age) or age < 0:
        raise ValidationError("age_years", "Age must be a non-negative number")

    return age


@dataclass
class FormValidation:
    """Per-field validation state of a listing form."""
    errors: dict = field(default_factory=dict)
    banned_terms: dict = field(default_factory=dict)
    policy_fields: set = field(default_factory=set)
    age_years: Optional[float] = None

    @property
    def can_submit(self) -> bool:
        return not self.errors

    def first_error(self) -> Optional[ValidationError]:
        for name in FIELD_ORDER:
            if name in self.errors:
                if name in self.policy_fields:
                    return ContentPolicyError(name, self.banned_terms[name])
                return ValidationError(name, self.errors[name])
        return None

    def raise_for_errors(self):
        """Raise the first blocking error, if any."""
        error = self.first_error()
        if error is not None:
            raise error

    def to_dict(self) -> dict:
        return {
            "can_submit": self.can_submit,
            "errors": dict(self.errors),
            "banned_terms": {k: list(v) for k, v in self.banned_terms.items()},
        }


def validate_listing_form(form: ListingForm) -> FormValidation:
    """
    Validate every field of a listing form independently.

    Args:
        form: Raw form values

    Returns:
        FormValidation: Collected field errors; ``can_submit`` is False while
                        any blocking condition holds
    """
    result = FormValidation()
    errors = result.errors

    title = form.title or ""
    description = form.description or ""

    if not title.strip():
        errors["title"] = "Title is required."
    elif text_length(title) > MAX_TITLE_LENGTH:
        errors["title"] = f"Title must be at most {MAX_TITLE_LENGTH} characters."

    if not description.strip():
        errors["description"] = "Description is required."
    elif text_length(description) > MAX_DESCRIPTION_LENGTH:
        errors["description"] = f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters."

    for name, text in (("title", title), ("description", description)):
        terms = find_banned_terms(text)
        if terms:
            result.banned_terms[name] = terms
            if name not in errors:
                errors[name] = f"Please remove selling-related terms: {', '.join(terms)}"
                result.policy_fields.add(name)

    if not (form.city or "").strip():
        errors["city"] = "Please enter the city/location."

    if not (form.contact_email or "").strip() and not (form.contact_phone or "").strip():
        errors["contact"] = "Please provide at least an email or a phone number."

    try:
        result.age_years = parse_age(form.age_years)
    except ValidationError as e:
        errors["age_years"] = e.message

    if form.animal_type not in catalog.animal_values():
        errors["animal_type"] = f"Unknown animal type: {form.animal_type}"
    elif form.breed not in catalog.breeds_for(form.animal_type):
        errors["breed"] = f"Unknown breed for {form.animal_type}: {form.breed}"

    if form.sex not in SEXES:
        errors["sex"] = f"Sex must be one of {', '.join(SEXES)}"

    if form.status not in STATUSES:
        errors["status"] = f"Status must be one of {', '.join(STATUSES)}"

    return result


def validate_image(content_type: Optional[str], size: int, max_size_mb: int) -> None:
    """
    Validate a single image candidate.

    Args:
        content_type: MIME type reported for the file
        size: File size in bytes
        max_size_mb: Maximum file size in megabytes

    Raises:
        ValidationError: If the file is not an image or is too large
    """
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("image", "Only image files are allowed.")

    if size > max_size_mb * 1024 * 1024:
        raise ValidationError("image", f"Each image must be < {max_size_mb} MB.")


def validate_credentials(email: Optional[str], password: Optional[str]) -> tuple[str, str]:
    """
    Validate sign-in/registration credentials.

    Returns:
        tuple: (normalized email, password)

    Raises:
        ValidationError: If email or password is missing or malformed
    """
    email = (email or "").strip()
    if not email:
        raise ValidationError("email", "Email is required")

    if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email):
        raise ValidationError("email", f"Invalid email address: {email}")

    if not password:
        raise ValidationError("password", "Password is required")

    if len(password) < 6:
        raise ValidationError("password", "Password must be at least 6 characters")

    return email.lower(), password
