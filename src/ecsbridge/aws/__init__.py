"""Amazon Web Services protocol layer: request signing, ECS gateway, EC2 instance bridge."""
