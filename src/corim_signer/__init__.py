"""
corim_signer — CoRIM signing toolchain.

Turns an unsigned, CBOR-encoded CoRIM plus its CorimMeta record into a
COSE_Sign1 signed CoRIM, optionally carrying the signing certificate and
its intermediate chain in the protected header.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
