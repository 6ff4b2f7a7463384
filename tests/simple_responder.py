#!/usr/bin/env python3

import logging
import asyncio
import hue_ssdp_responder as hue

logging.basicConfig(level=logging.DEBUG)

async def amain():
    # The responder context manager starts listening on the SSDP multicast port and answers
    # discovery requests on behalf of the bridge until the context manager exits.
    async with hue.HueSsdpResponder("my-hue.local:80") as responder:
        # This will wait forever unless another task stops the responder
        await responder.wait_for_done()

loop = asyncio.new_event_loop()
try:
    asyncio.set_event_loop(loop)
    loop.run_until_complete(amain())
finally:
    loop.close()
