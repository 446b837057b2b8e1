"""
Domain exceptions for the donation pipeline.

Every error carries a stable ``code`` (returned to API callers as the failure
reason) and a ``retryable`` flag so transport layers can tell transient
infrastructure problems apart from conflicts the caller must fix.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors"""
    code = 'PIPELINE_ERROR'
    retryable = False
    default_message = 'Donation pipeline error'

    def __init__(self, message: str = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {
            'success': False,
            'reason': self.code,
            'message': self.message,
            'retryable': self.retryable,
        }


# Validation

class InvalidAmount(PipelineError):
    code = 'INVALID_AMOUNT'
    default_message = 'Amount must be greater than zero'


# Authentication

class UnauthenticatedCaller(PipelineError):
    code = 'UNAUTHENTICATED'
    default_message = 'Authentication required'


class IdentityMismatch(PipelineError):
    code = 'IDENTITY_MISMATCH'
    default_message = 'Asserted identity does not match the authenticated user'


# Not found

class NotFoundError(PipelineError):
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class IdentityNotFound(NotFoundError):
    code = 'IDENTITY_NOT_FOUND'
    default_message = 'User not found'


class IntentNotFound(NotFoundError):
    code = 'INTENT_NOT_FOUND'
    default_message = 'Payment request not found'


class DonationNotFound(NotFoundError):
    code = 'DONATION_NOT_FOUND'
    default_message = 'Donation not found'


class FulfillmentItemNotFound(NotFoundError):
    code = 'FULFILLMENT_ITEM_NOT_FOUND'
    default_message = 'Fulfillment item not found'


class BatchNotFound(NotFoundError):
    code = 'BATCH_NOT_FOUND'
    default_message = 'Distribution batch not found'


class ProductNotFound(NotFoundError):
    code = 'PRODUCT_NOT_FOUND'
    default_message = 'Campaign product not found'


class NoEligibleCampaign(NotFoundError):
    code = 'NO_ELIGIBLE_CAMPAIGN'
    default_message = 'No active campaigns available for donation'


# Conflicts

class ConflictError(PipelineError):
    code = 'CONFLICT'
    default_message = 'Operation conflicts with current state'


class SignatureMismatch(ConflictError):
    code = 'SIGNATURE_MISMATCH'
    default_message = 'Invalid signature'


class InsufficientStock(ConflictError):
    code = 'INSUFFICIENT_STOCK'
    default_message = 'Insufficient stock for product'


class InsufficientUnallocatedItems(ConflictError):
    code = 'INSUFFICIENT_UNALLOCATED_ITEMS'
    default_message = 'Not enough unallocated items for this product'


class InvalidTransition(ConflictError):
    code = 'INVALID_TRANSITION'
    default_message = 'Status transition not allowed'


class AllocationConflict(ConflictError):
    code = 'ALLOCATION_CONFLICT'
    default_message = 'Item is already allocated to an active batch'


# Transient

class GatewayError(PipelineError):
    code = 'GATEWAY_ERROR'
    retryable = True
    default_message = 'Payment gateway error'


class GatewayTimeout(GatewayError):
    code = 'GATEWAY_TIMEOUT'
    default_message = 'Payment gateway timed out, please retry'


class GatewayUnavailable(GatewayError):
    code = 'GATEWAY_UNAVAILABLE'
    default_message = 'Payment gateway unavailable, please retry'


class GatewayRejected(PipelineError):
    """The gateway answered but refused the request (4xx)"""
    code = 'GATEWAY_REJECTED'
    default_message = 'Payment gateway rejected the request'
