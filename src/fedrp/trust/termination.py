"""Trust anchor termination check for resolved chains."""

from __future__ import annotations

from fedrp.trust.models import TrustChain, ValidationErrorCode, ValidationFailure


def check_chain_termination(
    chain: TrustChain,
    trust_anchor: str,
    op_entity_id: str,
) -> list[ValidationFailure]:
    """Check that ``chain`` is a complete path from the OP to ``trust_anchor``.

    Rules, in order:

    - an empty chain is invalid (``trust_chain_invalid``);
    - the first statement must be about the OP itself (``trust_chain_invalid``);
    - every statement must carry a verified signature (``invalid_signature``);
    - every non-terminal statement must name authority hints
      (``missing_authority_hints``) and the next issuer must be among them
      (``trust_chain_invalid``);
    - the terminal statement must be self-issued and its issuer must equal the
      configured trust anchor (``trust_chain_invalid``).

    Args:
        chain: Chain returned by the resolver.
        trust_anchor: The configured trust anchor entity id.
        op_entity_id: The OP being validated.

    Returns:
        All failures found; an empty list means the chain is valid.
    """
    if not chain.statements:
        return [
            ValidationFailure.create(
                ValidationErrorCode.TRUST_CHAIN_INVALID,
                "Empty trust chain cannot be validated",
                op_entity_id,
                trust_anchor=trust_anchor,
            )
        ]

    failures: list[ValidationFailure] = []
    statements = chain.statements

    leaf = statements[0]
    if leaf.sub != op_entity_id:
        failures.append(
            ValidationFailure.create(
                ValidationErrorCode.TRUST_CHAIN_INVALID,
                f"Trust chain leaf {leaf.sub} does not match OP {op_entity_id}",
                op_entity_id,
                leaf=leaf.sub,
            )
        )

    for statement in statements:
        if not statement.signature_verified:
            failures.append(
                ValidationFailure.create(
                    ValidationErrorCode.INVALID_SIGNATURE,
                    f"Signature verification failed for statement about {statement.sub} "
                    f"issued by {statement.iss}",
                    op_entity_id,
                    issuer=statement.iss,
                    subject=statement.sub,
                )
            )

    for current, superior in zip(statements, statements[1:]):
        if not current.authority_hints:
            failures.append(
                ValidationFailure.create(
                    ValidationErrorCode.MISSING_AUTHORITY_HINTS,
                    f"Entity {current.sub} missing authority hints",
                    op_entity_id,
                    entity=current.sub,
                )
            )
        elif superior.iss not in current.authority_hints:
            failures.append(
                ValidationFailure.create(
                    ValidationErrorCode.TRUST_CHAIN_INVALID,
                    f"Entity {current.sub} does not list {superior.iss} as authority",
                    op_entity_id,
                    entity=current.sub,
                    authority=superior.iss,
                )
            )

    terminal = statements[-1]
    if terminal.iss != terminal.sub:
        failures.append(
            ValidationFailure.create(
                ValidationErrorCode.TRUST_CHAIN_INVALID,
                f"Trust chain terminus is not self-signed: iss={terminal.iss}, sub={terminal.sub}",
                op_entity_id,
                terminus=terminal.iss,
            )
        )
    if terminal.iss != trust_anchor:
        failures.append(
            ValidationFailure.create(
                ValidationErrorCode.TRUST_CHAIN_INVALID,
                f"Trust chain terminates at {terminal.iss}, not at the configured "
                f"Trust Anchor {trust_anchor}",
                op_entity_id,
                terminus=terminal.iss,
                trust_anchor=trust_anchor,
            )
        )

    return failures
