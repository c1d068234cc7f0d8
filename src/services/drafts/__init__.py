"""Draft lifecycle services: decoding, transport, slots, registry, acceptance."""
