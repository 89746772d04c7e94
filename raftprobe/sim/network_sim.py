import logging
from typing import Iterable, Optional


class Segment:

    def __init__(self, name, node_ids):
        self.name = name
        self.node_ids = set(node_ids)

    def __str__(self):
        return f"Net: {self.name} {len(self.node_ids)} nodes"

    def __contains__(self, node_id):
        return node_id in self.node_ids


class NetManager:
    """
    Tracks which simulated nodes can talk to each other. Unsplit, every node is
    on the "main" segment. A split divides the nodes into disjoint segments,
    nodes can only reach nodes on their own segment.
    """

    def __init__(self, node_ids: Iterable[int]):
        self.full_cluster = Segment("main", node_ids)
        self.segments = None
        self.logger = logging.getLogger("SimulatedNetwork")

    def add_node(self, node_id):
        self.full_cluster.node_ids.add(node_id)
        if self.segments:
            self.segments[0].node_ids.add(node_id)

    def segment_of(self, node_id) -> Optional[Segment]:
        if self.segments is None:
            if node_id in self.full_cluster:
                return self.full_cluster
            return None
        for seg in self.segments:
            if node_id in seg:
                return seg
        return None

    def can_reach(self, from_id, to_id) -> bool:
        seg = self.segment_of(from_id)
        return seg is not None and to_id in seg

    def split_network(self, segments: list[Iterable[int]]):
        node_set = set()
        new_segments = []
        for index, part in enumerate(segments):
            part = set(part)
            for node_id in part:
                if node_id not in self.full_cluster:
                    raise Exception(f"cannot split on unknown node {node_id}")
                if node_id in node_set:
                    raise Exception(f"node {node_id} listed in more than one segment")
                node_set.add(node_id)
            new_segments.append(Segment(f"seg-{index}", part))
        # anything not mentioned stays together on the first segment
        leftover = self.full_cluster.node_ids - node_set
        if leftover:
            new_segments[0].node_ids |= leftover
        self.segments = new_segments
        disp = [f"{seg.name}:{len(seg.node_ids)}" for seg in self.segments]
        self.logger.info("Split %d node network into seg lengths %s",
                         len(self.full_cluster.node_ids), ','.join(disp))

    def unsplit(self):
        if self.segments is None:
            return
        self.segments = None
        self.logger.info("Healed network, %d nodes on main segment", len(self.full_cluster.node_ids))

    def isolate(self, node_id):
        if self.segments is None:
            rest = self.full_cluster.node_ids - {node_id}
            self.segments = [Segment("main", rest), Segment(f"iso-{node_id}", {node_id})]
        else:
            current = self.segment_of(node_id)
            if current.name == f"iso-{node_id}":
                return
            current.node_ids.discard(node_id)
            self.segments.append(Segment(f"iso-{node_id}", {node_id}))
        self.logger.info("Isolated node %s", node_id)

    def reconnect(self, node_id):
        if self.segments is None:
            return
        current = self.segment_of(node_id)
        if current is not None and current.name == f"iso-{node_id}":
            self.segments.remove(current)
            self.segments[0].node_ids.add(node_id)
        if len(self.segments) == 1:
            self.unsplit()
        else:
            self.logger.info("Reconnected node %s", node_id)

    def majority_segment(self, members: Iterable[int]) -> Optional[Segment]:
        """
        The segment holding a strict majority of the given cluster members, if
        any segment does.
        """
        members = set(members)
        if self.segments is None:
            candidates = [self.full_cluster]
        else:
            candidates = self.segments
        for seg in candidates:
            if len(seg.node_ids & members) > len(members) / 2:
                return seg
        return None
