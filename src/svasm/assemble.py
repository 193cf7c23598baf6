"""
Positional assembly of breakend contigs

The graph is stored arena-style. Each node is a (kmer, position) pair held as an index into
parallel lists (kmer, position, weight, evidence count, reference count) and edges are index
pairs joining a kmer to each kmer which extends it by a single base at the next position. Since
every edge moves one position forward the graph is acyclic.

Contigs are extracted greedily. The highest weight path is found by dynamic programming over
the nodes in descending position order, then all the evidence contributing to that path is
removed from the graph and the search is repeated until no weighted nodes remain.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import networkx as nx

from .constants import FILTER, MAX_PHRED, EVIDENCE_KIND
from .error import AssemblyBoundError, MalformedEvidenceError
from .evidence import Evidence
from .kmer import KmerSupportIndex, decode_kmer, kmer_mask, min_quality_weight
from .util import logger


@dataclass
class Contig:
    """
    a path through the positional assembly graph

    Attributes:
        sequence: the consensus sequence of the path
        quality: per-base consensus quality
        reference_index: the reference sequence the window was on
        start_position: reference position of the first base
        leading_reference: number of bases anchored to the reference at the start of the contig
        trailing_reference: number of bases anchored to the reference at the end of the contig
        weight: total weight of the nodes on the path
        novel_weight: total weight of the nodes on the path which are not reference kmers
        evidence: the evidence contributing to the path
        filters: names of the thresholds the contig did not pass
    """

    sequence: str
    quality: List[int]
    reference_index: int
    start_position: int
    leading_reference: int
    trailing_reference: int
    weight: int
    novel_weight: int
    evidence: Tuple[Evidence, ...]
    filters: List[str] = field(default_factory=list)

    @property
    def support(self) -> int:
        return len(self.evidence)

    @property
    def evidence_ids(self) -> List[str]:
        return [e.evidence_id for e in self.evidence]

    @property
    def end_position(self) -> int:
        return self.start_position + len(self.sequence) - 1


def path_key(score: int, length: int, position: int, kmer: int) -> Tuple[int, int, int, int]:
    """
    ranks candidate paths. Higher weight first, then longer paths, then the leftmost start position
    and finally the lowest kmer
    """
    return (score, length, -position, -kmer)


class PositionalAssemblyGraph:
    """
    graph over (kmer, position) nodes for a single window of evidence
    """

    def __init__(
        self,
        k: int,
        reference_index: int = 0,
        max_window_nodes: Optional[int] = None,
        max_subgraph_fragment_width: Optional[int] = None,
        weight_func=min_quality_weight,
        fallback_base_quality: int = 20,
    ):
        """
        Args:
            k: the kmer size
            reference_index: the reference sequence the window is on
            max_window_nodes: the largest number of nodes allowed (None for no limit)
            max_subgraph_fragment_width: the largest number of positions a single contig path may span (None for no limit)
            weight_func: computes the weight of a kmer from its bases and base qualities
            fallback_base_quality: base quality to use for evidence without qualities
        """
        self.k = k
        self.reference_index = reference_index
        self.max_window_nodes = max_window_nodes
        self.max_subgraph_fragment_width = max_subgraph_fragment_width
        self.weight_func = weight_func
        self.fallback_base_quality = fallback_base_quality

        self.node_index: Dict[Tuple[int, int], int] = {}
        self.kmers: List[int] = []
        self.positions: List[int] = []
        self.weights: List[int] = []
        self.counts: List[int] = []
        self.reference_counts: List[int] = []
        # support entries (node, evidence index, weight, is reference)
        self.support: List[Tuple[int, int, int, bool]] = []
        self.node_support: List[List[int]] = []
        self.evidence: List[Evidence] = []
        self.evidence_support: List[List[int]] = []
        self.removed: List[bool] = []
        self.edges: List[Tuple[int, int]] = []
        self.successors: List[List[int]] = []
        self._edges_built = False

    def __len__(self):
        return len(self.kmers)

    @property
    def min_position(self) -> Optional[int]:
        return min(self.positions) if self.positions else None

    @property
    def max_position(self) -> Optional[int]:
        return max(self.positions) if self.positions else None

    def _add_node(self, kmer: int, position: int) -> int:
        key = (kmer, position)
        if key in self.node_index:
            return self.node_index[key]
        if self.max_window_nodes is not None and len(self.kmers) >= self.max_window_nodes:
            raise AssemblyBoundError(
                'assembly window exceeds the maximum number of nodes ({})'.format(self.max_window_nodes),
                self.reference_index,
                self.min_position,
                self.max_position,
            )
        index = len(self.kmers)
        self.node_index[key] = index
        self.kmers.append(kmer)
        self.positions.append(position)
        self.weights.append(0)
        self.counts.append(0)
        self.reference_counts.append(0)
        self.node_support.append([])
        self.successors.append([])
        self._edges_built = False
        return index

    def add_evidence(self, evidence: Evidence) -> int:
        """
        add the kmer support of an evidence item to the graph

        Returns:
            the number of support entries added

        Raises:
            MalformedEvidenceError: the evidence cannot be split into kmers
            AssemblyBoundError: the graph has grown past the node limit
        """
        kmer_index = KmerSupportIndex(
            evidence,
            self.k,
            weight_func=self.weight_func,
            fallback_base_quality=self.fallback_base_quality,
        )
        evidence_index = len(self.evidence)
        self.evidence.append(evidence)
        self.evidence_support.append([])
        self.removed.append(False)
        added = 0
        for support_node in kmer_index:
            if support_node.kmer is None or support_node.weight <= 0:
                continue
            for position in range(support_node.start_position, support_node.end_position + 1):
                node = self._add_node(support_node.kmer, position)
                entry = len(self.support)
                self.support.append((node, evidence_index, support_node.weight, support_node.is_reference))
                self.node_support[node].append(entry)
                self.evidence_support[evidence_index].append(entry)
                self.weights[node] += support_node.weight
                self.counts[node] += 1
                if support_node.is_reference:
                    self.reference_counts[node] += 1
                added += 1
        return added

    def build_edges(self):
        """
        connect each node to the nodes at the next position whose kmer shares the k-1 base overlap
        """
        mask = kmer_mask(self.k)
        self.edges = []
        for node, (kmer, position) in enumerate(zip(self.kmers, self.positions)):
            successors = []
            for base in range(4):
                succ = self.node_index.get((((kmer << 2) | base) & mask, position + 1))
                if succ is not None:
                    successors.append(succ)
                    self.edges.append((node, succ))
            self.successors[node] = successors
        self._edges_built = True

    def is_alive(self, node: int) -> bool:
        return self.weights[node] > 0

    def to_networkx(self) -> nx.DiGraph:
        """
        the nodes still carrying weight and the edges between them
        """
        if not self._edges_built:
            self.build_edges()
        graph = nx.DiGraph()
        graph.add_nodes_from(n for n in range(len(self)) if self.is_alive(n))
        graph.add_edges_from((u, v) for u, v in self.edges if self.is_alive(u) and self.is_alive(v))
        return graph

    def remove_evidence(self, evidence_index: int):
        if self.removed[evidence_index]:
            return
        for entry in self.evidence_support[evidence_index]:
            node, _, weight, is_reference = self.support[entry]
            self.weights[node] -= weight
            self.counts[node] -= 1
            if is_reference:
                self.reference_counts[node] -= 1
        self.removed[evidence_index] = True

    def drop_reference_subgraphs(self) -> int:
        """
        remove all evidence only found in subgraphs which have no novel kmers, these cannot produce contigs

        Returns:
            the number of subgraphs removed
        """
        dropped = 0
        for component in nx.weakly_connected_components(self.to_networkx()):
            if any(self.counts[n] > self.reference_counts[n] for n in component):
                continue
            dropped += 1
            for node in component:
                for entry in self.node_support[node]:
                    evidence_index = self.support[entry][1]
                    if all(
                        self.support[e][0] in component for e in self.evidence_support[evidence_index]
                    ):
                        self.remove_evidence(evidence_index)
        return dropped

    def best_path(self) -> Optional[List[int]]:
        """
        the highest weight path through the nodes which still carry weight

        Returns:
            the node indices along the path or None if no nodes carry weight
        """
        if not self._edges_built:
            self.build_edges()
        alive = [n for n in range(len(self)) if self.is_alive(n)]
        if not alive:
            return None
        alive.sort(key=lambda n: self.positions[n], reverse=True)
        score: Dict[int, int] = {}
        length: Dict[int, int] = {}
        following: Dict[int, Optional[int]] = {}
        for node in alive:
            best = None
            for succ in self.successors[node]:
                if succ not in score:
                    continue
                if best is None or (score[succ], length[succ], -self.kmers[succ]) > (
                    score[best],
                    length[best],
                    -self.kmers[best],
                ):
                    best = succ
            following[node] = best
            score[node] = self.weights[node] + (score[best] if best is not None else 0)
            length[node] = 1 + (length[best] if best is not None else 0)

        start = max(
            alive, key=lambda n: path_key(score[n], length[n], self.positions[n], self.kmers[n])
        )
        path = [start]
        while following[path[-1]] is not None:
            path.append(following[path[-1]])  # type: ignore
        if self.max_subgraph_fragment_width is not None and len(path) > self.max_subgraph_fragment_width:
            logger.debug(
                f'truncating assembly path at {self.reference_index}:{self.positions[start]} from {len(path)} to {self.max_subgraph_fragment_width} positions'
            )
            path = path[: self.max_subgraph_fragment_width]
        return path

    def path_evidence(self, path: List[int]) -> List[int]:
        """
        indices of the evidence still contributing to the nodes of a path, in the order they were added
        """
        result = set()
        for node in path:
            for entry in self.node_support[node]:
                evidence_index = self.support[entry][1]
                if not self.removed[evidence_index]:
                    result.add(evidence_index)
        return sorted(result)

    def path_to_contig(self, path: List[int], evidence_indices: List[int]) -> Contig:
        sequence = decode_kmer(self.kmers[path[0]], self.k) + ''.join(
            decode_kmer(self.kmers[node] & 3, 1) for node in path[1:]
        )
        quality = []
        for base in range(len(sequence)):
            covering = path[max(0, base - self.k + 1) : base + 1]
            quality.append(min(MAX_PHRED, max(self.weights[node] for node in covering)))
        is_reference = [self.reference_counts[node] > 0 for node in path]
        leading = 0
        while leading < len(path) and is_reference[leading]:
            leading += 1
        trailing = 0
        while trailing < len(path) and is_reference[len(path) - trailing - 1]:
            trailing += 1
        return Contig(
            sequence=sequence,
            quality=quality,
            reference_index=self.reference_index,
            start_position=self.positions[path[0]],
            leading_reference=leading,
            trailing_reference=trailing,
            weight=sum(self.weights[node] for node in path),
            novel_weight=sum(self.weights[node] for node, ref in zip(path, is_reference) if not ref),
            evidence=tuple(sorted((self.evidence[i] for i in evidence_indices), key=lambda e: e.evidence_id)),
        )

    def extract_contigs(self, min_support: int = 1, min_weight: int = 0, write_filtered: bool = False) -> List[Contig]:
        """
        Args:
            min_support: contigs supported by fewer evidence items are filtered
            min_weight: contigs with a lower total weight are filtered
            write_filtered: keep filtered contigs (marked with their filters) instead of dropping them

        Returns:
            the contigs in the order they were extracted
        """
        dropped = self.drop_reference_subgraphs()
        if dropped:
            logger.debug(f'dropped {dropped} reference-only subgraphs')
        contigs = []
        while True:
            path = self.best_path()
            if path is None:
                break
            evidence_indices = self.path_evidence(path)
            contig = self.path_to_contig(path, evidence_indices)
            for evidence_index in evidence_indices:
                self.remove_evidence(evidence_index)
            if contig.leading_reference == len(path):
                continue
            if contig.support < min_support:
                contig.filters.append(FILTER.LOW_SUPPORT)
            if contig.weight < min_weight:
                contig.filters.append(FILTER.LOW_WEIGHT)
            if contig.filters and not write_filtered:
                continue
            contigs.append(contig)
        return contigs


def evidence_span(evidence: Evidence) -> Tuple[int, int]:
    """
    the reference positions covered by the kmers of an evidence item
    """
    length = len(evidence.sequence or '')
    return (
        evidence.start_position - evidence.error_width,
        evidence.start_position + evidence.error_width + max(length, 1) - 1,
    )


def is_assembly_input(evidence: Evidence) -> bool:
    return evidence.kind != EVIDENCE_KIND.ASSEMBLY and evidence.sequence is not None


def assembly_windows(evidence: Iterable[Evidence], window_size: Optional[int] = None) -> Iterator[List[Evidence]]:
    """
    group position sorted evidence into windows of overlapping or adjacent kmer spans

    Args:
        evidence: evidence in order of non-decreasing start position
        window_size: largest number of reference positions a window may span (None for no limit)
    """
    window: List[Evidence] = []
    window_start = window_end = None
    last_position = None
    for item in evidence:
        if not is_assembly_input(item):
            continue
        if last_position is not None and item.start_position < last_position:
            raise ValueError(
                'evidence must be given in order of non-decreasing start position',
                item.evidence_id,
                item.start_position,
                last_position,
            )
        last_position = item.start_position
        start, end = evidence_span(item)
        if window and (
            start > window_end + 1
            or (window_size is not None and max(end, window_end) - window_start + 1 > window_size)
        ):
            yield window
            window = []
        if not window:
            window_start, window_end = start, end
        else:
            window_start = min(window_start, start)
            window_end = max(window_end, end)
        window.append(item)
    if window:
        yield window


def assemble_window(
    evidence: List[Evidence],
    k: int,
    reference_index: int = 0,
    min_support: int = 1,
    min_weight: int = 0,
    write_filtered: bool = False,
    max_window_nodes: Optional[int] = None,
    max_subgraph_fragment_width: Optional[int] = None,
    fallback_base_quality: int = 20,
    weight_func=min_quality_weight,
) -> List[Contig]:
    """
    assemble the contigs for a single window of evidence. Malformed evidence is skipped and a window
    which exceeds the node limit is abandoned, in both cases with a warning

    Returns:
        the contigs in the order they were extracted
    """
    graph = PositionalAssemblyGraph(
        k,
        reference_index=reference_index,
        max_window_nodes=max_window_nodes,
        max_subgraph_fragment_width=max_subgraph_fragment_width,
        weight_func=weight_func,
        fallback_base_quality=fallback_base_quality,
    )
    try:
        for item in evidence:
            try:
                graph.add_evidence(item)
            except MalformedEvidenceError as err:
                logger.warning(f'skipping malformed evidence {item.evidence_id}: {err.args[0]}')
        contigs = graph.extract_contigs(min_support=min_support, min_weight=min_weight, write_filtered=write_filtered)
    except AssemblyBoundError as err:
        start, end = evidence_span(evidence[0])[0], max(evidence_span(e)[1] for e in evidence)
        logger.warning(
            f'abandoned assembly of window {reference_index}:{start}-{end} ({len(evidence)} evidence): {err.args[0]}'
        )
        return []
    logger.debug(f'assembled {len(contigs)} contigs from {len(evidence)} evidence at {reference_index}:{graph.min_position}')
    return contigs


def assemble(evidence: Iterable[Evidence], k: int, reference_index: int = 0, window_size: Optional[int] = None, **kwargs) -> List[Contig]:
    """
    assemble all windows of a position sorted stream of evidence

    Returns:
        the contigs in order of start position
    """
    contigs = []
    for window in assembly_windows(evidence, window_size):
        contigs.extend(assemble_window(window, k, reference_index=reference_index, **kwargs))
    contigs.sort(key=lambda c: (c.start_position, c.end_position, c.sequence))
    return contigs
