"""geometry.py

Primitivas geométricas 2D usadas pelo sensor e pela detecção de colisão:
pontos, segmentos, interpolação linear e interseção de segmentos/polígonos.

Convenção de eixos: o ângulo 0 aponta para "cima" e o eixo y cresce para
baixo (coordenadas de tela), por isso os deslocamentos usam `-sin`/`-cos`.
"""
from dataclasses import dataclass
import math
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class Point:
	x: float
	y: float
	id: Optional[int] = None
	# posição paramétrica (0..1) ao longo do segmento consultado; só existe
	# em resultados de interseção
	offset: Optional[float] = None


@dataclass(frozen=True)
class Segment:
	p1: Point
	p2: Point
	one_way: bool = False  # só informativo, não entra nos testes geométricos


Polygon = List[Point]


def lerp(a: float, b: float, t: float) -> float:
	# forma simétrica: t=0 devolve `a` e t=1 devolve `b` sem erro de arredondamento
	return a * (1.0 - t) + b * t


def distance(p1: Point, p2: Point) -> float:
	return math.hypot(p1.x - p2.x, p1.y - p2.y)


def angle(p: Point) -> float:
	"""Ângulo (rad) do vetor `p` em relação ao eixo +x."""
	return math.atan2(p.y, p.x)


def get_intersection(a1: Point, a2: Point, b1: Point, b2: Point) -> Optional[Point]:
	"""Interseção entre os segmentos finitos a1-a2 e b1-b2.

	Resolve `a1 + t*(a2-a1) == b1 + u*(b2-b1)` pelo determinante 2D e só
	aceita o ponto se `t` e `u` estiverem em [0, 1]. O ponto devolvido leva
	`offset = t`, isto é, a fração percorrida ao longo de a1-a2.

	Segmentos paralelos ou degenerados (determinante nulo) retornam `None`,
	inclusive quando são colineares e se sobrepõem.
	"""
	t_top = (b2.x - b1.x) * (a1.y - b1.y) - (b2.y - b1.y) * (a1.x - b1.x)
	u_top = (b1.y - a1.y) * (a1.x - a2.x) - (b1.x - a1.x) * (a1.y - a2.y)
	bottom = (b2.y - b1.y) * (a2.x - a1.x) - (b2.x - b1.x) * (a2.y - a1.y)

	# só o zero exato conta como paralelo, em qualquer escala
	if bottom == 0:
		return None

	t = t_top / bottom
	u = u_top / bottom
	if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
		return Point(lerp(a1.x, a2.x, t), lerp(a1.y, a2.y, t), offset=t)
	return None


def polys_intersect(poly_a: Sequence[Point], poly_b: Sequence[Point]) -> bool:
	"""True se alguma aresta de `poly_a` cruza alguma aresta de `poly_b`.

	Os polígonos são fechados implicitamente (último vértice liga ao
	primeiro). Um polígono de 2 pontos representa um único segmento.
	Não detecta um polígono inteiramente contido no outro.
	"""
	for i in range(len(poly_a)):
		a1 = poly_a[i]
		a2 = poly_a[(i + 1) % len(poly_a)]
		for j in range(len(poly_b)):
			touch = get_intersection(a1, a2, poly_b[j], poly_b[(j + 1) % len(poly_b)])
			if touch is not None:
				return True
	return False


def segment_polygon(segment) -> List[Point]:
	"""Converte uma borda (`Segment` ou par de pontos) no polígono de 2 pontos."""
	if isinstance(segment, Segment):
		return [segment.p1, segment.p2]
	p1, p2 = segment
	return [p1, p2]
