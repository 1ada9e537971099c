# cod_intake/services/validation.py
import re

from cod_intake.schemas.order import OrderSubmission
from cod_intake.schemas.shop import ValidationPolicy

# 8-15 characters of digits, spaces, + - ( )
PHONE_FORMAT = re.compile(r"^[0-9\s+\-()]{8,15}$")


def validate_submission(
    submission: OrderSubmission,
    policy: ValidationPolicy,
) -> str | None:
    """
    Check a storefront submission against the shop's policy.

    Rules run in order and stop at the first failure:
      1-3. required name / phone / address (per policy) must be non-blank
      4.   a phone, when given, must look like a phone number
      5.   1 <= quantity <= policy.max_quantity
      6.   product id, variant id and product title present
      7.   price > 0

    Returns:
        The human-readable message for the first failure, or None.
    """
    required = policy.required_fields

    if "name" in required and not submission.customer_name.strip():
        return "Customer name is required"
    if "phone" in required and not submission.customer_phone.strip():
        return "Phone number is required"
    if "address" in required and not submission.customer_address.strip():
        return "Delivery address is required"

    # Format applies whether or not the phone is required
    if submission.customer_phone and not PHONE_FORMAT.match(submission.customer_phone):
        return "Invalid phone number format"

    if not submission.quantity or submission.quantity < 1:
        return "Quantity must be at least 1"
    if submission.quantity > policy.max_quantity:
        return f"Maximum quantity is {policy.max_quantity}"

    if not submission.product_id or not submission.variant_id:
        return "Product and variant are required"
    if not submission.product_title:
        return "Product title is required"

    if not submission.price or submission.price <= 0:
        return "Invalid price"

    return None
