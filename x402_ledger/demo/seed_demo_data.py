"""
Demo data generation.

Fills the ledger with realistic-looking seller and buyer events spread over
the last N days. For demos and manual testing only.
"""

import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from x402_ledger.core.event_logger import SpendingLogger, UsageLogger
from x402_ledger.core.status import (
    AgentType,
    ServiceCategory,
    SpendingStatus,
    UsageStatus,
)

AGENTS = [
    "claude-agent-001", "claude-agent-002",
    "gpt-agent-001", "gpt-agent-002",
    "gemini-agent-001",
    "custom-bot-001", "custom-bot-002",
    None,  # anonymous callers
]

SELLER_ENDPOINTS = [
    "/api/v1/chat/completions",
    "/api/v1/embeddings",
    "/api/v1/images/generate",
    "/api/v1/audio/transcribe",
    "/api/v1/code/analyze",
    "/api/v1/translate",
    "/api/v1/summarize",
    "/api/v1/search",
]

# (service_id, service_name, category, base cost in atomic units)
SERVICES = [
    ("openai-gpt4", "OpenAI GPT-4", ServiceCategory.AI_LANGUAGE_MODEL, 50_000),
    ("anthropic-claude", "Anthropic Claude", ServiceCategory.AI_LANGUAGE_MODEL, 45_000),
    ("google-gemini", "Google Gemini Pro", ServiceCategory.AI_LANGUAGE_MODEL, 40_000),
    ("midjourney-api", "Midjourney API", ServiceCategory.AI_IMAGE_GENERATION, 200_000),
    ("dall-e-3", "DALL-E 3", ServiceCategory.AI_IMAGE_GENERATION, 150_000),
    ("elevenlabs-voice", "ElevenLabs Voice", ServiceCategory.AI_VOICE, 30_000),
    ("weather-api", "Weather API", ServiceCategory.DATA_API, 5_000),
    ("financial-data", "Financial Data API", ServiceCategory.DATA_API, 10_000),
    ("ipfs-storage", "IPFS Storage", ServiceCategory.STORAGE, 15_000),
    ("replicate-api", "Replicate API", ServiceCategory.COMPUTE, 60_000),
    ("mixpanel", "Mixpanel Analytics", ServiceCategory.ANALYTICS, 12_000),
    ("chainlink-oracle", "Chainlink Oracle", ServiceCategory.BLOCKCHAIN, 80_000),
]

BUYER_ENDPOINTS = [
    "/chat/completions", "/generate", "/analyze", "/query", "/process",
    "/translate", "/summarize", "/upload", "/download", "/verify",
]

NETWORKS = ["eip155:84532", "eip155:8453", "eip155:1", "eip155:137", "eip155:42161"]
ASSETS = ["USDC", "USDT", "ETH", "WETH"]
METHODS = ["POST", "GET", "PUT"]


@dataclass(frozen=True)
class DemoSummary:
    """Counts of what a seeding run created."""
    total_events: int
    success_count: int
    amount_sum: int
    days: int


def _tx_hash(rng: random.Random) -> str:
    return "0x" + "".join(f"{rng.getrandbits(64):016x}" for _ in range(4))


def seed_usage_events(
    logger: UsageLogger,
    count: int = 100,
    days: int = 30,
    seed: Optional[int] = None,
) -> DemoSummary:
    """Log ``count`` seller events backdated over the last ``days`` days.

    Roughly 70% succeed, 20% are 402s and the rest fail verification or
    settlement. Only successful events carry payment details.
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    if days < 1:
        raise ValueError("days must be >= 1")

    rng = random.Random(seed)
    now = logger.clock()
    success_count = 0
    amount_sum = 0

    for _ in range(count):
        roll = rng.random()
        if roll < 0.70:
            status = UsageStatus.SUCCESS
        elif roll < 0.90:
            status = UsageStatus.PAYMENT_REQUIRED
        else:
            status = rng.choice([UsageStatus.VERIFY_FAILED, UsageStatus.SETTLE_FAILED])

        agent = rng.choice(AGENTS)
        created_at = now - timedelta(
            days=rng.randrange(days), hours=rng.randrange(24), minutes=rng.randrange(60)
        )
        success = status is UsageStatus.SUCCESS
        amount = rng.randrange(100_000, 10_100_000) if success else None

        logger.builder().set(
            actor_id=agent,
            actor_type=rng.choice(list(AgentType)) if agent else None,
            method=rng.choice(METHODS),
            endpoint=rng.choice(SELLER_ENDPOINTS),
            network=rng.choice(NETWORKS) if success else None,
            asset=rng.choice(ASSETS) if success else None,
            amount_atomic=amount,
            tx_hash=_tx_hash(rng) if success else None,
            client_ip=f"192.168.1.{rng.randrange(255)}",
            user_agent=f"DemoAgent/1.0 ({agent or 'unknown'})",
            latency_ms=50 + rng.randrange(450),
            created_at=created_at,
            requested_at=created_at,
            settled_at=created_at + timedelta(seconds=rng.randrange(10)) if success else None,
        ).status(status).commit()

        if success:
            success_count += 1
            amount_sum += amount

    return DemoSummary(count, success_count, amount_sum, days)


def seed_spending_events(
    logger: SpendingLogger,
    count: int = 200,
    days: int = 30,
    seed: Optional[int] = 42,
    buyer_id: str = "demo-buyer-001",
    buyer_name: str = "Demo AI Agent",
) -> DemoSummary:
    """Log ``count`` buyer events backdated over the last ``days`` days.

    About 85% succeed; amounts vary +/-30% around each service's base cost.
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    if days < 1:
        raise ValueError("days must be >= 1")

    rng = random.Random(seed)
    now = logger.clock()
    success_count = 0
    amount_sum = 0

    for _ in range(count):
        service_id, service_name, category, base_cost = rng.choice(SERVICES)
        if rng.random() < 0.85:
            status = SpendingStatus.SUCCESS
        elif rng.random() < 0.4:
            status = SpendingStatus.PAYMENT_REQUIRED
        elif rng.random() < 0.5:
            status = SpendingStatus.FAILED
        else:
            status = SpendingStatus.PENDING

        success = status is SpendingStatus.SUCCESS
        amount = int(base_cost * (0.7 + rng.random() * 0.6)) if success else None
        created_at = now - timedelta(
            days=rng.randrange(days), hours=rng.randrange(24), minutes=rng.randrange(60)
        )

        logger.builder().set(
            actor_id=buyer_id,
            buyer_name=buyer_name,
            service_id=service_id,
            service_name=service_name,
            service_url=f"https://api.{service_id.replace('-', '')}.com",
            endpoint=rng.choice(BUYER_ENDPOINTS),
            category=category,
            network=rng.choice(NETWORKS) if success else None,
            asset="USDC",
            amount_atomic=amount,
            tx_hash=_tx_hash(rng) if success else None,
            error_message="payment failed" if status is SpendingStatus.FAILED else None,
            latency_ms=50 + rng.randrange(950),
            created_at=created_at,
            settled_at=created_at + timedelta(seconds=rng.randrange(10)) if success else None,
        ).status(status).commit()

        if success:
            success_count += 1
            amount_sum += amount

    return DemoSummary(count, success_count, amount_sum, days)
