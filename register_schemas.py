#!/usr/bin/env python3
"""
Protobuf 스키마 등록 스크립트

예제 User 스키마(example/user.proto)를 "{TOPIC_NAME}-value" 주제로 등록합니다.

Usage:
    python register_schemas.py            # 호환성 확인 후 등록
    python register_schemas.py --delete   # 주제 삭제
"""

import asyncio
import sys

from proto_stream.common.logger import PipelineLogger
from proto_stream.config.settings import (
    kafka_settings,
    require_fields,
    schema_registry_settings,
    serde_settings,
)
from proto_stream.core.types import MessageField, SerdeError
from proto_stream.examples.user import User
from proto_stream.infra.messaging.protobuf import AsyncProtobufSerializer, SerializerConfig
from proto_stream.infra.messaging.protobuf.subjects import DEFAULT_USER_TOPIC, subject_name_strategy
from proto_stream.infra.messaging.schema_registry import AsyncSchemaRegistryClient

logger = PipelineLogger.get_logger("schema_registration", "main")


async def register(client: AsyncSchemaRegistryClient, subject: str) -> int:
    serializer = AsyncProtobufSerializer(client, SerializerConfig(auto_register_schemas=True))
    schema = serializer.message_schema(User())

    subjects = await client.list_subjects()
    logger.info(f"현재 등록된 주제들: {subjects}")

    references = await serializer.resolve_references(schema.file_descriptor)
    if subject in subjects:
        compatible = await client.check_compatibility(subject, schema.schema_str, references)
        if not compatible:
            raise SystemExit(f"❌ {subject}: 최신 버전과 호환되지 않는 스키마")

    return await client.register(subject, schema.schema_str, references)


async def main() -> None:
    """메인 함수"""
    try:
        require_fields(schema_registry_settings, "url")
    except SerdeError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)

    strategy = subject_name_strategy(serde_settings.subject_name_strategy)
    subject = strategy(kafka_settings.topic_name or DEFAULT_USER_TOPIC, User(), MessageField.VALUE)

    async with AsyncSchemaRegistryClient.from_settings(schema_registry_settings) as client:
        if len(sys.argv) > 1 and sys.argv[1] == "--delete":
            logger.info(f"🗑️  주제 삭제 중: {subject}")
            versions = await client.delete_subject(subject)
            logger.info(f"삭제된 버전: {versions}")
            return

        logger.info("📋 Protobuf 스키마 등록 시작")
        try:
            schema_id = await register(client, subject)
        except SerdeError as e:
            logger.error(f"❌ 스키마 등록 실패: {e}", exc_info=True)
            sys.exit(1)

        level = await client.get_compatibility_level(subject)
        logger.info(f"  - {subject}: ID {schema_id} (compatibility={level})")
        logger.info("🎉 스키마 등록 완료!")


if __name__ == "__main__":
    asyncio.run(main())
