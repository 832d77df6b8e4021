from schemas.schemas import ChannelOptions, CreateTopicRequest, PublishRequest  # noqa: F401
