# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""GatewayStack -- request governance for AI tool-calling backends.

Every inbound tool call passes four stages, each able to stop it:

    admission  -> rate limit, spend budget, agent workflow guard
    policy     -> permissions, rule-based policy, input schema
    content    -> PII detection, redaction, safety classification
    egress     -> credential injection, SSRF guard, bounded forwarding

The stages are usable on their own (``gatewaystack.limits``,
``gatewaystack.policy``, ``gatewaystack.content``, ``gatewaystack.proxy``)
or composed by :class:`gatewaystack.pipeline.GovernancePipeline`.
"""

__version__ = "0.4.0"
