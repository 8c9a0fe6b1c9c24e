"""mail/ -- Outbound email adapters.

Layer rule: mail/ imports only stdlib + core/. auth/ depends on the
EmailSender protocol defined here, never on a concrete sender; api/ picks the
concrete sender at startup via build_email_sender().
"""
