"""Tests for the PeerEndpoint facade."""

import json

import pytest

from common.constants import ROLE_INITIATOR, ROLE_RESPONDER
from peer.endpoint import PeerEndpoint
from peer.exceptions import TransferError
from peer.negotiation import Phase


def make_endpoint(role, signaling, factory, capture=None, **kwargs):
    return PeerEndpoint(
        'ws://relay.test/ws',
        'abcd1234',
        role,
        factory,
        capture_provider=capture,
        keepalive_interval=60,
        signaling=signaling,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_share_attaches_data_channel(fake_signaling, transport_factory, capture_provider):
    endpoint = make_endpoint(ROLE_INITIATOR, fake_signaling, transport_factory, capture_provider)
    await endpoint.start()

    await endpoint.share()

    channel = transport_factory.last.channel
    assert endpoint.phase == Phase.OFFERING
    assert channel.on_message is not None
    await endpoint.close()


@pytest.mark.asyncio
async def test_send_file_requires_data_channel(fake_signaling, transport_factory, sample_file):
    endpoint = make_endpoint(ROLE_RESPONDER, fake_signaling, transport_factory)
    await endpoint.start()

    with pytest.raises(TransferError):
        await endpoint.send_file(sample_file)
    await endpoint.close()


@pytest.mark.asyncio
async def test_send_file_uses_configured_chunk_size(fake_signaling, transport_factory, capture_provider, sample_file):
    endpoint = make_endpoint(
        ROLE_INITIATOR, fake_signaling, transport_factory, capture_provider, chunk_size=50000,
    )
    await endpoint.start()
    await endpoint.share()

    chunks = await endpoint.send_file(sample_file)

    assert chunks == 3
    assert len(transport_factory.last.channel.frames) == 5
    await endpoint.close()


@pytest.mark.asyncio
async def test_inbound_file_is_saved_and_reported(fake_signaling, transport_factory, capture_provider, tmp_path):
    statuses = []
    files = []
    endpoint = make_endpoint(
        ROLE_INITIATOR, fake_signaling, transport_factory, capture_provider,
        download_dir=tmp_path / 'downloads',
        on_status=statuses.append,
        on_file=files.append,
    )
    await endpoint.start()
    await endpoint.share()
    channel = transport_factory.last.channel

    channel.on_message(json.dumps({'type': 'files-meta', 'name': 'notes.txt', 'size': 5, 'mimetype': 'text/plain'}))
    channel.on_message(b'hello')
    channel.on_message(json.dumps({'type': 'files-complete'}))

    assert (tmp_path / 'downloads' / 'notes.txt').read_bytes() == b'hello'
    assert files[0].name == 'notes.txt'
    assert statuses[-1] == 'Received notes.txt (5 bytes)'
    await endpoint.close()


@pytest.mark.asyncio
async def test_size_mismatch_is_reported_not_raised(fake_signaling, transport_factory, capture_provider):
    statuses = []
    endpoint = make_endpoint(
        ROLE_INITIATOR, fake_signaling, transport_factory, capture_provider, on_status=statuses.append,
    )
    await endpoint.start()
    await endpoint.share()
    channel = transport_factory.last.channel

    channel.on_message(json.dumps({'type': 'files-meta', 'name': 'a.bin', 'size': 4}))
    channel.on_message(b'ab')
    channel.on_message(json.dumps({'type': 'files-complete'}))

    assert statuses[-1].startswith('Transfer failed')
    await endpoint.close()


def test_from_config_reads_relay_settings(temp_config, transport_factory):
    temp_config.data['relay_host'] = 'relay.example'
    temp_config.data['relay_port'] = 4000
    temp_config.data['chunk_size'] = 1024
    temp_config.data['require_approval'] = False

    endpoint = PeerEndpoint.from_config(temp_config, 'abcd1234', ROLE_RESPONDER, transport_factory)

    assert endpoint.signaling.ws_url == 'ws://relay.example:4000/ws'
    assert endpoint.chunk_size == 1024
    assert endpoint.controller.require_approval is False
